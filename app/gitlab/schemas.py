"""
GitLab API response schemas（Pydantic）。

为什么要单独放 schema：
- GitLab 的 payload 结构复杂，直接用 dict 容易写错 key
- schema 校验失败会立刻暴露问题（比“默默 None”安全）

说明：
- 缓存里存的是原始 JSON，这里的模型只在读取时做校验
- issue / MR 保留未声明字段（`extra="allow"`），前端需要完整对象；
  其余只覆盖当前用到的子集
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class GitLabUserRef(BaseModel):
    """issue / MR 里嵌套的 user 子结构（author/assignee）。"""

    model_config = ConfigDict(extra="allow")

    id: int
    username: str
    name: str | None = None


class GitLabIssue(BaseModel):
    """issue 对象。`iid` 只在单个 project 内唯一。"""

    model_config = ConfigDict(extra="allow")

    id: int | None = None
    iid: int
    project_id: int
    title: str = ""
    description: str | None = None
    state: Literal["opened", "closed"]
    labels: list[str] = Field(default_factory=list)
    web_url: str | None = None
    created_at: str | None = None
    author: GitLabUserRef | None = None
    assignee: GitLabUserRef | None = None
    project_name: str | None = None


class GitLabNote(BaseModel):
    """issue note（评论）。"""

    id: int
    body: str | None = None
    system: bool = False


class GitLabProjectSummary(BaseModel):
    """`GET /projects/:id?simple=true` 的子集。"""

    id: int
    name: str
    path_with_namespace: str | None = None


class GitLabUserSummary(BaseModel):
    """`GET /users/:id` 的子集。"""

    id: int
    username: str
    name: str


class GitLabMergeRequest(BaseModel):
    """group MR 列表里的单个 MR。"""

    model_config = ConfigDict(extra="allow")

    iid: int
    project_id: int
    title: str = ""
    state: str
    web_url: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    draft: bool = False
    author: GitLabUserRef | None = None
    project_name: str | None = None
    author_name: str | None = None
