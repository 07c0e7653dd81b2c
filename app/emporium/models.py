"""
Emporium 领域模型（Pydantic）。

用途：
- 明确 spider / 聚合接口的输出结构
- 直接作为 HTTP 响应体（字段名与前端约定一致，所以用 camelCase）
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from app.gitlab.schemas import GitLabIssue
from app.gitlab.schemas import GitLabMergeRequest


class LinkedIssueNode(BaseModel):
    """
    关联 issue 树的一个节点。

    树而不是图：同一个 iid 在整棵树里最多出现一次，没有回指。
    """

    issue: GitLabIssue
    linkedIssues: list[LinkedIssueNode] = Field(default_factory=list)


LinkedIssueNode.model_rebuild()


class FunhouseFeatures(BaseModel):
    active: list[LinkedIssueNode]
    complete: list[LinkedIssueNode]


class FunhouseResponse(BaseModel):
    """Feature Funhouse：feature issue 各自展开成关联树，按状态分组。"""

    features: FunhouseFeatures
    total: int
    timestamp: str


class IssuesResponse(BaseModel):
    issues: list[GitLabIssue]
    total: int
    timestamp: str


class MergeRequestsResponse(BaseModel):
    mergeRequests: list[GitLabMergeRequest]
    total: int
    timestamp: str
