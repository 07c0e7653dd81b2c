"""
Emporium 聚合流程编排。

流程由工程代码控制，每个接口都是固定的几步：
- funhouse：拉 feature 列表 -> 每个 feature 并发 spider 成树 -> 批量补项目名 -> 按状态分组
- issues：拉 emporium issue 列表 -> 批量补项目名
- merge requests：拉 MR 列表 -> 批量补项目名 + 作者名

只有顶层列表的第一页失败会让整个请求失败；补全类失败一律降级。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import anyio

from app.config import AppConfig
from app.emporium.enrichment import annotate_merge_requests
from app.emporium.enrichment import annotate_project_names
from app.emporium.enrichment import annotate_tree_project_names
from app.emporium.enrichment import resolve_project_names
from app.emporium.enrichment import resolve_user_names
from app.emporium.models import FunhouseFeatures
from app.emporium.models import FunhouseResponse
from app.emporium.models import IssuesResponse
from app.emporium.models import LinkedIssueNode
from app.emporium.models import MergeRequestsResponse
from app.emporium.spider import iter_tree_issues
from app.emporium.spider import resolve_feature_tree
from app.gitlab.client import GitLabClient
from app.gitlab.schemas import GitLabIssue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmporiumService:
    """聚合流程的运行时依赖集合。"""

    client: GitLabClient
    group_id: str
    emporium_label: str
    funhouse_label: str
    spider_max_depth: int


def build_emporium_service(config: AppConfig, client: GitLabClient) -> EmporiumService:
    return EmporiumService(
        client=client,
        group_id=config.gitlab_group_id,
        emporium_label=config.emporium_label,
        funhouse_label=config.funhouse_label,
        spider_max_depth=config.spider_max_depth,
    )


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


async def build_funhouse(service: EmporiumService) -> FunhouseResponse:
    """
    Feature Funhouse 数据。

    树本身不缓存，每次请求都重新 spider；
    但 spider 里的每个 GitLab 响应都在缓存里，所以重复请求很便宜。
    """
    features = await service.client.list_group_issues(group_id=service.group_id, label=service.funhouse_label)
    logger.info(f"Spidering {len(features)} funhouse features (max_depth={service.spider_max_depth})")

    # 不同 feature 之间互不影响（各自一份 visited），并发展开；结果按 (project_id, iid) 回填
    trees_by_key: dict[tuple[int, int], LinkedIssueNode] = {}

    async def _spider_feature(feature: GitLabIssue) -> None:
        key = (feature.project_id, feature.iid)
        try:
            trees_by_key[key] = await resolve_feature_tree(
                client=service.client,
                root_issue=feature,
                max_depth=service.spider_max_depth,
            )
        except Exception as exc:
            # 单个 feature 失败不能拖垮整个 task group，退化成没有子节点的树
            logger.warning(f"Failed to spider feature {feature.iid}: {exc!r}")
            trees_by_key[key] = LinkedIssueNode(issue=feature, linkedIssues=[])

    async with anyio.create_task_group() as tg:
        for feature in features:
            tg.start_soon(_spider_feature, feature)

    trees = [trees_by_key[(f.project_id, f.iid)] for f in features]
    project_ids = [issue.project_id for tree in trees for issue in iter_tree_issues(tree)]
    project_names = await resolve_project_names(service.client, project_ids)
    trees = [annotate_tree_project_names(tree, project_names) for tree in trees]

    return FunhouseResponse(
        features=FunhouseFeatures(
            active=[t for t in trees if t.issue.state == "opened"],
            complete=[t for t in trees if t.issue.state == "closed"],
        ),
        total=len(features),
        timestamp=_now_iso(),
    )


async def list_emporium_issues(service: EmporiumService) -> IssuesResponse:
    issues = await service.client.list_group_issues(group_id=service.group_id, label=service.emporium_label)
    project_names = await resolve_project_names(service.client, [i.project_id for i in issues])
    annotated = annotate_project_names(issues, project_names)
    return IssuesResponse(issues=annotated, total=len(annotated), timestamp=_now_iso())


async def list_merge_requests(service: EmporiumService) -> MergeRequestsResponse:
    merge_requests = await service.client.list_group_merge_requests(group_id=service.group_id)
    project_ids = [mr.project_id for mr in merge_requests]
    author_ids = [mr.author.id for mr in merge_requests if mr.author is not None]

    project_names: dict[int, str] = {}
    user_names: dict[int, str] = {}

    async def _projects() -> None:
        project_names.update(await resolve_project_names(service.client, project_ids))

    async def _users() -> None:
        user_names.update(await resolve_user_names(service.client, author_ids))

    async with anyio.create_task_group() as tg:
        tg.start_soon(_projects)
        tg.start_soon(_users)

    annotated = annotate_merge_requests(merge_requests, project_names, user_names)
    return MergeRequestsResponse(mergeRequests=annotated, total=len(annotated), timestamp=_now_iso())
