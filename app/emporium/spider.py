"""
Link Spider：从一个 feature issue 出发，沿 `#id` 引用递归展开关联 issue 树。

关键约束：
- **visited 集合在整棵树内共享**（不是每条分支各一份）：一个 iid 在任何位置被展开过，
  之后再被别的分支引用就直接省略，不会重复出现
- root 的 iid 在遍历开始前就放进 visited，永远不会作为子节点出现
- `depth >= max_depth` 的节点直接返回空 children（root 的 depth 为 0）
- 同一节点下的引用按提取顺序**逐个**拉取，遍历顺序因此是确定的
- 单个关联 issue / 评论拉取失败只记 warning 并跳过，宁可返回部分结果也不整体失败

所有 GitLab 请求都经过 `GitLabClient.fetch_json`（cache-aside），
所以 TTL 窗口内重复 spider 同一批 feature 基本不会再打到 GitLab。
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from app.emporium.links import collect_linked_issue_ids
from app.emporium.models import LinkedIssueNode
from app.gitlab.client import GitLabClient
from app.gitlab.errors import GitLabError
from app.gitlab.schemas import GitLabIssue

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 5


async def extract_linked_issue_ids(client: GitLabClient, issue: GitLabIssue) -> list[int]:
    """提取 issue description + 评论里引用的 iid；评论拉取失败时只用 description。"""
    note_bodies: list[str | None] = []
    try:
        notes = await client.list_issue_notes(project_id=issue.project_id, issue_iid=issue.iid)
        note_bodies = [n.body for n in notes]
    except (GitLabError, ValidationError) as exc:
        logger.warning(f"Failed to fetch notes for issue {issue.iid}: {exc}")
    return collect_linked_issue_ids(issue.description, note_bodies, own_iid=issue.iid)


async def resolve_feature_tree(
    client: GitLabClient,
    root_issue: GitLabIssue,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> LinkedIssueNode:
    """以 `root_issue` 为根构建关联 issue 树。"""
    if max_depth < 0:
        raise ValueError("max_depth must be >= 0")
    visited: set[int] = {root_issue.iid}
    return await _spider(
        client=client,
        issue=root_issue,
        visited=visited,
        root_iid=root_issue.iid,
        depth=0,
        max_depth=max_depth,
    )


async def _spider(
    client: GitLabClient,
    issue: GitLabIssue,
    visited: set[int],
    root_iid: int,
    depth: int,
    max_depth: int,
) -> LinkedIssueNode:
    visited.add(issue.iid)
    if depth >= max_depth:
        return LinkedIssueNode(issue=issue, linkedIssues=[])

    linked_ids = await extract_linked_issue_ids(client=client, issue=issue)
    children: list[LinkedIssueNode] = []
    for linked_id in linked_ids:
        # 前面的兄弟分支可能已经展开过它
        if linked_id == root_iid or linked_id in visited:
            continue
        try:
            linked_issue = await client.get_issue(project_id=issue.project_id, issue_iid=linked_id)
        except (GitLabError, ValidationError) as exc:
            logger.warning(f"Failed to fetch linked issue {linked_id} (from #{issue.iid}): {exc}")
            continue
        child = await _spider(
            client=client,
            issue=linked_issue,
            visited=visited,
            root_iid=root_iid,
            depth=depth + 1,
            max_depth=max_depth,
        )
        children.append(child)
    return LinkedIssueNode(issue=issue, linkedIssues=children)


def iter_tree_issues(node: LinkedIssueNode) -> list[GitLabIssue]:
    """前序遍历，返回树里全部 issue。"""
    stack = [node]
    issues: list[GitLabIssue] = []
    while stack:
        current = stack.pop()
        issues.append(current.issue)
        stack.extend(reversed(current.linkedIssues))
    return issues
