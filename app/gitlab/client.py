"""
GitLab API 客户端（外部系统连接器）。

约定：
- 这里只做“HTTP 调用 + 缓存 + 错误处理 + schema 校验”，不做业务决策。
- 所有 GET 都走 `fetch_json`（cache-aside）：先查缓存，miss 才真正请求，
  正文校验通过后才按数据类别的 TTL 写回（结构不对也算失败，不进缓存）。
- 发生错误时**直接抛错**，不要吞异常，也不写缓存（由调用方决定降级策略）。
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from app.config import CacheTTLConfig
from app.gitlab.errors import GitLabAPIError
from app.gitlab.errors import GitLabError
from app.gitlab.errors import GitLabMalformedResponseError
from app.gitlab.errors import GitLabUnavailableError
from app.gitlab.schemas import GitLabIssue
from app.gitlab.schemas import GitLabMergeRequest
from app.gitlab.schemas import GitLabNote
from app.gitlab.schemas import GitLabProjectSummary
from app.gitlab.schemas import GitLabUserSummary
from app.infra.cache import Cache
from app.infra.cache import build_cache_key

logger = logging.getLogger(__name__)

PER_PAGE = 100

ModelT = TypeVar("ModelT", bound=BaseModel)
Parser = Callable[[Any], Any]


def _model_parser(model: type[ModelT]) -> Callable[[Any], ModelT]:
    def parse(data: Any) -> ModelT:
        return model.model_validate(data)

    return parse


def _list_parser(model: type[ModelT]) -> Callable[[Any], list[ModelT]]:
    def parse(data: Any) -> list[ModelT]:
        if not isinstance(data, list):
            raise ValueError(f"expected a JSON list, got {type(data).__name__}")
        return [model.model_validate(x) for x in data]

    return parse


class GitLabClient:
    """只读 GitLab API client（带进程内缓存）。"""

    def __init__(
        self,
        base_url: str,
        private_token: str,
        http_client: httpx.AsyncClient,
        cache: Cache,
        ttl: CacheTTLConfig,
    ) -> None:
        """
        - base_url: GitLab 实例地址（不包含末尾 /）
        - private_token: PRIVATE-TOKEN（建议用只读机器人账号）
        - http_client: 复用的 httpx.AsyncClient（超时在这里统一配置）
        - cache: 进程级共享缓存（启动时创建一次，注入进来）
        - ttl: 各类数据的缓存窗口
        """
        self._base_url = base_url.rstrip("/")
        self._private_token = private_token
        self._http_client = http_client
        self._cache = cache
        self._ttl = ttl

    def _headers(self) -> dict[str, str]:
        """GitLab API 鉴权头。"""
        return {"PRIVATE-TOKEN": self._private_token}

    async def _get_json(self, endpoint: str, params: Mapping[str, object]) -> Any:
        """真正发起 GET 请求；网络错误、非 2xx、非 JSON 正文都映射成 GitLab 错误类型。"""
        url = f"{self._base_url}/api/v4{endpoint}"
        logger.info(f"GitLab API call: GET {endpoint} params={dict(params)}")
        try:
            response = await self._http_client.get(url, headers=self._headers(), params=dict(params))
        except httpx.TimeoutException as exc:
            raise GitLabUnavailableError(endpoint=endpoint, code="TIMEOUT", message=str(exc)) from exc
        except httpx.ConnectError as exc:
            raise GitLabUnavailableError(endpoint=endpoint, code="CONNECT_ERROR", message=str(exc)) from exc
        except httpx.TransportError as exc:
            raise GitLabUnavailableError(endpoint=endpoint, code="NETWORK_ERROR", message=str(exc)) from exc
        if response.status_code >= 400:
            raise GitLabAPIError(endpoint=endpoint, status_code=response.status_code, message=response.text)
        try:
            return response.json()
        except ValueError as exc:
            raise GitLabMalformedResponseError(endpoint=endpoint, message=f"body is not JSON: {response.text[:200]}") from exc

    async def fetch_json(
        self,
        endpoint: str,
        params: Mapping[str, object] | None,
        ttl: float,
        parse: Parser | None = None,
    ) -> Any:
        """
        cache-aside 读取：所有上游调用的唯一入口。

        - 命中：直接返回缓存里的 JSON（经过 `parse`）
        - 未命中：请求 GitLab，`parse` 通过后才以 `ttl` 写入缓存
        - 失败：异常原样抛出（`parse` 失败转成 `GitLabMalformedResponseError`），缓存不变
        """
        query = dict(params or {})
        key = build_cache_key(f"gitlab:{endpoint}", query)
        cached = self._cache.get(key)
        if cached is not None:
            return parse(cached) if parse is not None else cached
        data = await self._get_json(endpoint, query)
        result = data
        if parse is not None:
            try:
                result = parse(data)
            except (ValidationError, ValueError) as exc:
                raise GitLabMalformedResponseError(endpoint=endpoint, message=str(exc)) from exc
        self._cache.set(key, data, ttl)
        return result

    async def _fetch_all_pages(
        self,
        endpoint: str,
        params: Mapping[str, object],
        ttl: float,
        model: type[ModelT],
    ) -> list[ModelT]:
        """
        按页拉取直到出现“不满一页”。

        第一页失败直接抛错（整体不可用）；后续页失败只记录日志并返回已拿到的部分。
        """
        items: list[ModelT] = []
        page = 1
        while True:
            try:
                data = await self.fetch_json(
                    endpoint,
                    {**params, "per_page": PER_PAGE, "page": page},
                    ttl,
                    parse=_list_parser(model),
                )
            except GitLabError as exc:
                if page == 1:
                    raise
                logger.error(f"Error fetching page {page} of {endpoint}, returning partial result: {exc}")
                break
            items.extend(data)
            logger.info(f"Fetched page {page} of {endpoint}: {len(data)} items (total so far: {len(items)})")
            if len(data) < PER_PAGE:
                break
            page += 1
        return items

    async def list_group_issues(self, group_id: str, label: str) -> list[GitLabIssue]:
        """拉取 group（含子 group）下带指定 label 的全部 issue（opened + closed）。"""
        params = {
            "labels": label,
            "state": "all",
            "include_subgroups": "true",
            "order_by": "created_at",
            "sort": "desc",
        }
        return await self._fetch_all_pages(f"/groups/{group_id}/issues", params, self._ttl.issues, GitLabIssue)

    async def list_group_merge_requests(self, group_id: str, state: str = "opened") -> list[GitLabMergeRequest]:
        """拉取 group（含子 group）下的 MR。"""
        params = {
            "state": state,
            "include_subgroups": "true",
            "order_by": "updated_at",
            "sort": "desc",
        }
        return await self._fetch_all_pages(
            f"/groups/{group_id}/merge_requests", params, self._ttl.issues, GitLabMergeRequest
        )

    async def get_issue(self, project_id: int, issue_iid: int) -> GitLabIssue:
        """GET /projects/:id/issues/:iid"""
        return await self.fetch_json(
            f"/projects/{project_id}/issues/{issue_iid}", None, self._ttl.issues, parse=_model_parser(GitLabIssue)
        )

    async def list_issue_notes(self, project_id: int, issue_iid: int) -> list[GitLabNote]:
        """GET /projects/:id/issues/:iid/notes（只取第一页，按创建时间正序）。"""
        params = {"per_page": PER_PAGE, "sort": "asc", "order_by": "created_at"}
        return await self.fetch_json(
            f"/projects/{project_id}/issues/{issue_iid}/notes",
            params,
            self._ttl.issues,
            parse=_list_parser(GitLabNote),
        )

    async def get_project(self, project_id: int) -> GitLabProjectSummary:
        """GET /projects/:id?simple=true（慢变数据，长 TTL）。"""
        return await self.fetch_json(
            f"/projects/{project_id}", {"simple": "true"}, self._ttl.projects, parse=_model_parser(GitLabProjectSummary)
        )

    async def get_user(self, user_id: int) -> GitLabUserSummary:
        """GET /users/:id（慢变数据，长 TTL）。"""
        return await self.fetch_json(f"/users/{user_id}", None, self._ttl.users, parse=_model_parser(GitLabUserSummary))

    async def get_group(self, group_id: str) -> dict[str, Any]:
        """GET /groups/:id，用于连通性检查，不走缓存。"""
        endpoint = f"/groups/{group_id}"
        data = await self._get_json(endpoint, {"with_projects": "false"})
        if not isinstance(data, dict):
            raise GitLabMalformedResponseError(endpoint=endpoint, message=f"expected a JSON object, got {type(data).__name__}")
        return data
