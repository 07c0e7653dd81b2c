from __future__ import annotations

import re
from collections.abc import Callable

import httpx

BASE_URL = "https://gitlab.example.com"


def make_issue(
    iid: int,
    description: str | None = "",
    project_id: int = 1,
    state: str = "opened",
    labels: list[str] | None = None,
) -> dict[str, object]:
    return {
        "id": project_id * 1000 + iid,
        "iid": iid,
        "project_id": project_id,
        "title": f"Issue {iid}",
        "description": description,
        "state": state,
        "labels": labels or [],
    }


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGitLab:
    """按路径分发的内存版 GitLab（通过 httpx.MockTransport 挂到 client 上）。"""

    def __init__(self) -> None:
        self.issues: dict[tuple[int, int], dict[str, object]] = {}
        self.notes: dict[tuple[int, int], list[dict[str, object]]] = {}
        self.projects: dict[int, dict[str, object]] = {}
        self.users: dict[int, dict[str, object]] = {}
        self.group_issues: dict[str, list[dict[str, object]]] = {}
        self.merge_requests: list[dict[str, object]] = []
        self.fail_paths: dict[str, int] = {}
        self.raise_paths: dict[str, Callable[[httpx.Request], Exception]] = {}
        self.body_paths: dict[str, Callable[[], httpx.Response]] = {}
        self.calls: list[str] = []
        self.requests: list[httpx.Request] = []

    def add_issue(self, issue: dict[str, object], notes: list[str] | None = None) -> None:
        key = (int(issue["project_id"]), int(issue["iid"]))  # type: ignore[call-overload]
        self.issues[key] = issue
        self.notes[key] = [{"id": i, "body": body, "system": False} for i, body in enumerate(notes or [], start=1)]

    def count(self, path: str) -> int:
        return self.calls.count(f"/api/v4{path}")

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append(path)
        self.requests.append(request)
        short = path.removeprefix("/api/v4")
        if short in self.raise_paths:
            raise self.raise_paths[short](request)
        if short in self.fail_paths:
            return httpx.Response(self.fail_paths[short], text="upstream says no")
        if short in self.body_paths:
            return self.body_paths[short]()

        page = int(request.url.params.get("page", "1"))
        per_page = int(request.url.params.get("per_page", "20"))

        if m := re.fullmatch(r"/groups/([^/]+)/issues", short):
            label = request.url.params.get("labels", "")
            items = [i for i in self.group_issues.get(m.group(1), []) if label in i.get("labels", [])]  # type: ignore[operator]
            return httpx.Response(200, json=items[(page - 1) * per_page : page * per_page])
        if re.fullmatch(r"/groups/[^/]+/merge_requests", short):
            return httpx.Response(200, json=self.merge_requests[(page - 1) * per_page : page * per_page])
        if m := re.fullmatch(r"/groups/([^/]+)", short):
            return httpx.Response(200, json={"id": m.group(1), "name": "Demo", "full_path": "demo"})
        if m := re.fullmatch(r"/projects/(\d+)/issues/(\d+)/notes", short):
            key = (int(m.group(1)), int(m.group(2)))
            if key not in self.issues:
                return httpx.Response(404, json={"message": "404 Not found"})
            return httpx.Response(200, json=self.notes.get(key, []))
        if m := re.fullmatch(r"/projects/(\d+)/issues/(\d+)", short):
            key = (int(m.group(1)), int(m.group(2)))
            if key not in self.issues:
                return httpx.Response(404, json={"message": "404 Not found"})
            return httpx.Response(200, json=self.issues[key])
        if m := re.fullmatch(r"/projects/(\d+)", short):
            project = self.projects.get(int(m.group(1)))
            if project is None:
                return httpx.Response(404, json={"message": "404 Project Not Found"})
            return httpx.Response(200, json=project)
        if m := re.fullmatch(r"/users/(\d+)", short):
            user = self.users.get(int(m.group(1)))
            if user is None:
                return httpx.Response(404, json={"message": "404 User Not Found"})
            return httpx.Response(200, json=user)
        return httpx.Response(404, json={"message": f"no route for {short}"})
