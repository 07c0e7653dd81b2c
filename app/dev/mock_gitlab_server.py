"""
本地 Mock GitLab API server（只覆盖本服务用到的只读接口）。

用途：
- 在没有真实 GitLab 的情况下，本地跑通：
  funhouse spider / issues 列表 / MR 列表 / 项目名与用户名补全
- 样例数据里故意放了自引用、环（#2 <-> #3）和菱形引用（#2、#3 都引用 #4）

启动：
  python -m app.dev.mock_gitlab_server
  GITLAB_BASE_URL=http://127.0.0.1:9002 GITLAB_TOKEN=x GITLAB_GROUP_ID=1 uvicorn app.main:app
"""

from __future__ import annotations

import uvicorn
from fastapi import FastAPI
from fastapi import HTTPException

_USERS: dict[int, dict[str, object]] = {
    1: {"id": 1, "username": "alice", "name": "Alice Example"},
    2: {"id": 2, "username": "bob", "name": "Bob Example"},
}

_PROJECTS: dict[int, dict[str, object]] = {
    10: {"id": 10, "name": "Widget API", "path_with_namespace": "demo/widget-api"},
    11: {"id": 11, "name": "Widget UI", "path_with_namespace": "demo/widget-ui"},
}


def _issue(project_id: int, iid: int, title: str, description: str, labels: list[str], state: str = "opened") -> dict[str, object]:
    return {
        "id": project_id * 1000 + iid,
        "iid": iid,
        "project_id": project_id,
        "title": title,
        "description": description,
        "state": state,
        "labels": labels,
        "web_url": f"http://127.0.0.1:9002/demo/project-{project_id}/-/issues/{iid}",
        "created_at": f"2024-01-{iid:02d}T00:00:00Z",
        "author": _USERS[1],
        "assignee": None,
    }


_ISSUES: dict[tuple[int, int], dict[str, object]] = {
    (10, 1): _issue(10, 1, "Feature: bulk export", "Tracks #2 and #3. See #1 for context.", ["funhouse"]),
    (10, 2): _issue(10, 2, "Export backend", "Needs #4, blocks #3", ["emporium"]),
    (10, 3): _issue(10, 3, "Export UI", "Follows #2", ["emporium"], state="closed"),
    (10, 4): _issue(10, 4, "Storage schema", "No further links", ["emporium", "priority"]),
    (11, 1): _issue(11, 1, "Feature: dark mode", "Broken ref #abc, real ref #7", ["funhouse"], state="closed"),
}

_NOTES: dict[tuple[int, int], list[dict[str, object]]] = {
    (10, 1): [{"id": 1, "body": "Also related: #4", "system": False}],
    (10, 3): [{"id": 2, "body": "Blocked by #4", "system": False}],
}

_MERGE_REQUESTS: list[dict[str, object]] = [
    {
        "iid": 5,
        "project_id": 10,
        "title": "Add export endpoint",
        "state": "opened",
        "web_url": "http://127.0.0.1:9002/demo/widget-api/-/merge_requests/5",
        "created_at": "2024-02-01T00:00:00Z",
        "updated_at": "2024-02-03T00:00:00Z",
        "draft": False,
        "author": _USERS[2],
    },
]


app = FastAPI(title="Mock GitLab API", version="0.1.0")


@app.get("/api/v4/groups/{group_id}")
async def get_group(group_id: str) -> dict[str, object]:
    return {"id": group_id, "name": "Demo", "full_path": "demo"}


@app.get("/api/v4/groups/{group_id}/issues")
async def list_group_issues(group_id: str, labels: str = "", page: int = 1) -> list[dict[str, object]]:
    _ = group_id
    if page > 1:
        return []
    wanted = {label for label in labels.split(",") if label}
    return [issue for issue in _ISSUES.values() if wanted.issubset(set(issue["labels"]))]  # type: ignore[arg-type]


@app.get("/api/v4/groups/{group_id}/merge_requests")
async def list_group_merge_requests(group_id: str, page: int = 1) -> list[dict[str, object]]:
    _ = group_id
    return _MERGE_REQUESTS if page == 1 else []


@app.get("/api/v4/projects/{project_id}/issues/{issue_iid}")
async def get_issue(project_id: int, issue_iid: int) -> dict[str, object]:
    issue = _ISSUES.get((project_id, issue_iid))
    if issue is None:
        raise HTTPException(status_code=404, detail="404 Not found")
    return issue


@app.get("/api/v4/projects/{project_id}/issues/{issue_iid}/notes")
async def list_issue_notes(project_id: int, issue_iid: int) -> list[dict[str, object]]:
    if (project_id, issue_iid) not in _ISSUES:
        raise HTTPException(status_code=404, detail="404 Not found")
    return _NOTES.get((project_id, issue_iid), [])


@app.get("/api/v4/projects/{project_id}")
async def get_project(project_id: int) -> dict[str, object]:
    project = _PROJECTS.get(project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="404 Project Not Found")
    return project


@app.get("/api/v4/users/{user_id}")
async def get_user(user_id: int) -> dict[str, object]:
    user = _USERS.get(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="404 User Not Found")
    return user


def main() -> None:
    uvicorn.run(app, host="127.0.0.1", port=9002)


if __name__ == "__main__":
    main()
