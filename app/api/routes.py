"""
HTTP 接入层（薄）。

职责：
- 暴露 funhouse / issues / merge requests 聚合接口
- 暴露缓存管理接口（status / clear）
- 把 GitLab 错误统一转换成 502 + 可定位的 details/code

业务流程不写在这里（由 `emporium/service.py` 负责）。
"""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import JSONResponse

from app.config import AppConfig
from app.emporium.models import FunhouseResponse
from app.emporium.models import IssuesResponse
from app.emporium.models import MergeRequestsResponse
from app.emporium.service import EmporiumService
from app.emporium.service import build_funhouse
from app.emporium.service import list_emporium_issues
from app.emporium.service import list_merge_requests
from app.gitlab.errors import GitLabAPIError
from app.gitlab.errors import GitLabError
from app.gitlab.errors import GitLabMalformedResponseError
from app.gitlab.errors import GitLabUnavailableError
from app.infra.cache import Cache
from app.infra.cache import CacheStats

logger = logging.getLogger(__name__)


def _error_details(exc: GitLabError) -> tuple[str, str]:
    if isinstance(exc, GitLabUnavailableError):
        return f"GitLab unreachable ({exc.code}): {exc.message}. Please check GITLAB_BASE_URL.", exc.code
    if isinstance(exc, GitLabAPIError):
        return f"GitLab API error: {exc.status_code} {exc.message}", exc.code
    if isinstance(exc, GitLabMalformedResponseError):
        return f"GitLab returned an unexpected body: {exc.message}", exc.code
    return str(exc), "UNKNOWN_ERROR"


async def gitlab_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """GitLab 顶层调用失败 -> 502。"""
    if not isinstance(exc, GitLabError):
        raise exc
    details, code = _error_details(exc)
    logger.error(f"Request {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=502,
        content={"error": "Failed to fetch data from GitLab", "details": details, "code": code},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GitLabError, gitlab_error_handler)


def build_api_router(config: AppConfig, service: EmporiumService, cache: Cache) -> APIRouter:
    """创建 /api 路由。"""
    router = APIRouter(prefix="/api")

    @router.get("/health")
    async def health() -> dict[str, str]:
        """健康检查：用于 k8s / LB 探活。"""
        return {"status": "ok"}

    @router.get("/config")
    async def public_config() -> dict[str, str]:
        return {
            "groupId": config.gitlab_group_id,
            "emporiumLabel": config.emporium_label,
            "funhouseLabel": config.funhouse_label,
        }

    @router.get("/test-gitlab")
    async def test_gitlab() -> dict[str, object]:
        """连通性检查：直接请求 group 信息（不走缓存）。"""
        group = await service.client.get_group(group_id=service.group_id)
        return {
            "success": True,
            "message": "GitLab connection successful",
            "groupName": group.get("name"),
            "groupPath": group.get("full_path"),
            "endpoint": str(config.gitlab_base_url),
        }

    @router.post("/cache/clear")
    async def clear_cache() -> dict[str, object]:
        cache.clear()
        return {"success": True, "message": "Cache cleared successfully"}

    @router.get("/cache/status")
    async def cache_status() -> CacheStats:
        return cache.stats()

    @router.get("/funhouse")
    async def funhouse() -> FunhouseResponse:
        return await build_funhouse(service)

    @router.get("/issues")
    async def issues() -> IssuesResponse:
        return await list_emporium_issues(service)

    @router.get("/merge-requests")
    async def merge_requests() -> MergeRequestsResponse:
        return await list_merge_requests(service)

    return router
