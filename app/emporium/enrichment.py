"""
批量补全展示数据（项目名 / 用户名）。

做法：
- 先对外键去重，每个不同的 id 只发一次请求
- 所有请求**并发**发出（anyio task group），全部结束后才返回，不留后台任务
- 结果按 id 回填（完成顺序不确定，绝不按下标对齐）
- 单个 id 失败时用确定性的占位值（`Project <id>` / `User <id>`），整批不失败
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable

import anyio
from pydantic import ValidationError

from app.emporium.models import LinkedIssueNode
from app.gitlab.client import GitLabClient
from app.gitlab.errors import GitLabError
from app.gitlab.schemas import GitLabIssue
from app.gitlab.schemas import GitLabMergeRequest

logger = logging.getLogger(__name__)

Resolver = Callable[[int], Awaitable[str]]


def project_placeholder(project_id: int) -> str:
    return f"Project {project_id}"


def user_placeholder(user_id: int) -> str:
    return f"User {user_id}"


async def resolve_distinct(
    ids: Iterable[int],
    resolver: Resolver,
    placeholder: Callable[[int], str],
) -> dict[int, str]:
    """对去重后的 id 并发调用 `resolver`，返回 id -> 名称。"""
    distinct = list(dict.fromkeys(ids))
    resolved: dict[int, str] = {}

    async def _resolve_one(item_id: int) -> None:
        try:
            resolved[item_id] = await resolver(item_id)
        except (GitLabError, ValidationError) as exc:
            logger.warning(f"Failed to resolve id {item_id}, using placeholder: {exc}")
            resolved[item_id] = placeholder(item_id)

    async with anyio.create_task_group() as tg:
        for item_id in distinct:
            tg.start_soon(_resolve_one, item_id)
    return resolved


async def resolve_project_names(client: GitLabClient, project_ids: Iterable[int]) -> dict[int, str]:
    async def _project_name(project_id: int) -> str:
        project = await client.get_project(project_id=project_id)
        return project.name

    return await resolve_distinct(project_ids, _project_name, project_placeholder)


async def resolve_user_names(client: GitLabClient, user_ids: Iterable[int]) -> dict[int, str]:
    async def _user_name(user_id: int) -> str:
        user = await client.get_user(user_id=user_id)
        return user.name

    return await resolve_distinct(user_ids, _user_name, user_placeholder)


def annotate_project_names(issues: list[GitLabIssue], names: dict[int, str]) -> list[GitLabIssue]:
    """按 project_id 回填 `project_name`（返回新对象，不改原列表）。"""
    return [
        issue.model_copy(update={"project_name": names.get(issue.project_id, project_placeholder(issue.project_id))})
        for issue in issues
    ]


def annotate_tree_project_names(node: LinkedIssueNode, names: dict[int, str]) -> LinkedIssueNode:
    """递归地给整棵树的每个 issue 回填 `project_name`。"""
    issue = annotate_project_names([node.issue], names)[0]
    children = [annotate_tree_project_names(child, names) for child in node.linkedIssues]
    return LinkedIssueNode(issue=issue, linkedIssues=children)


def annotate_merge_requests(
    merge_requests: list[GitLabMergeRequest],
    project_names: dict[int, str],
    user_names: dict[int, str],
) -> list[GitLabMergeRequest]:
    """回填 MR 的 `project_name` 与 `author_name`。"""
    annotated: list[GitLabMergeRequest] = []
    for mr in merge_requests:
        update: dict[str, object] = {
            "project_name": project_names.get(mr.project_id, project_placeholder(mr.project_id)),
        }
        if mr.author is not None:
            update["author_name"] = user_names.get(mr.author.id, user_placeholder(mr.author.id))
        annotated.append(mr.model_copy(update=update))
    return annotated
