from __future__ import annotations

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.routes import build_api_router
from app.api.routes import register_error_handlers
from app.config import load_config_from_env
from app.emporium import service as service_module
from app.emporium.models import LinkedIssueNode
from app.emporium.service import build_emporium_service
from app.gitlab.client import GitLabClient
from app.gitlab.schemas import GitLabIssue
from app.infra.cache import TTLCache
from tests.fakes import FakeGitLab
from tests.fakes import make_issue


@pytest.fixture
def api(fake_gitlab: FakeGitLab, cache: TTLCache) -> TestClient:
    config = load_config_from_env(
        {"GITLAB_BASE_URL": "https://gitlab.example.com", "GITLAB_TOKEN": "t", "GITLAB_GROUP_ID": "g"}
    )
    client = GitLabClient(
        base_url=str(config.gitlab_base_url),
        private_token=config.gitlab_token,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(fake_gitlab.handler)),
        cache=cache,
        ttl=config.cache_ttl,
    )
    app = FastAPI()
    register_error_handlers(app)
    app.include_router(build_api_router(config=config, service=build_emporium_service(config, client), cache=cache))
    return TestClient(app)


def _seed_funhouse(fake_gitlab: FakeGitLab) -> None:
    feature_open = make_issue(1, "tracks #2", project_id=10, labels=["funhouse"])
    feature_closed = make_issue(7, "done", project_id=11, state="closed", labels=["funhouse"])
    fake_gitlab.group_issues["g"] = [feature_open, feature_closed]
    fake_gitlab.add_issue(feature_open)
    fake_gitlab.add_issue(feature_closed)
    fake_gitlab.add_issue(make_issue(2, "", project_id=10))
    fake_gitlab.projects[10] = {"id": 10, "name": "Widget API"}


def test_health(api: TestClient) -> None:
    assert api.get("/api/health").json() == {"status": "ok"}


def test_funhouse_builds_trees_and_splits_by_state(api: TestClient, fake_gitlab: FakeGitLab) -> None:
    _seed_funhouse(fake_gitlab)
    body = api.get("/api/funhouse").json()

    assert body["total"] == 2
    active = body["features"]["active"]
    complete = body["features"]["complete"]
    assert [t["issue"]["iid"] for t in active] == [1]
    assert [t["issue"]["iid"] for t in complete] == [7]
    assert active[0]["issue"]["project_name"] == "Widget API"
    assert active[0]["linkedIssues"][0]["issue"]["iid"] == 2
    assert active[0]["linkedIssues"][0]["issue"]["project_name"] == "Widget API"
    # project 11 不存在 -> 占位名
    assert complete[0]["issue"]["project_name"] == "Project 11"


def test_cache_status_and_clear(api: TestClient, fake_gitlab: FakeGitLab) -> None:
    _seed_funhouse(fake_gitlab)
    fake_gitlab.projects[11] = {"id": 11, "name": "Widget UI"}
    api.get("/api/funhouse")
    status = api.get("/api/cache/status").json()
    assert status["count"] > 0
    assert {"key", "ageMs", "ttlMs"} <= set(status["entries"][0])

    calls_before = len(fake_gitlab.calls)
    api.get("/api/funhouse")
    assert len(fake_gitlab.calls) == calls_before

    assert api.post("/api/cache/clear").json()["success"] is True
    assert api.get("/api/cache/status").json() == {"count": 0, "entries": []}
    api.get("/api/funhouse")
    assert len(fake_gitlab.calls) > calls_before


def test_issues_are_annotated(api: TestClient, fake_gitlab: FakeGitLab) -> None:
    fake_gitlab.group_issues["g"] = [make_issue(3, project_id=10, labels=["emporium"])]
    fake_gitlab.projects[10] = {"id": 10, "name": "Widget API"}
    body = api.get("/api/issues").json()
    assert body["total"] == 1
    assert body["issues"][0]["project_name"] == "Widget API"


def test_upstream_rejection_becomes_502(api: TestClient, fake_gitlab: FakeGitLab) -> None:
    fake_gitlab.fail_paths["/groups/g/issues"] = 401
    response = api.get("/api/funhouse")
    assert response.status_code == 502
    assert response.json()["code"] == "HTTP_401"


def test_upstream_unreachable_becomes_502(api: TestClient, fake_gitlab: FakeGitLab) -> None:
    fake_gitlab.raise_paths["/groups/g/merge_requests"] = lambda request: httpx.ConnectError("dns", request=request)
    response = api.get("/api/merge-requests")
    assert response.status_code == 502
    assert response.json()["code"] == "CONNECT_ERROR"


def test_test_gitlab_reports_group(api: TestClient) -> None:
    body = api.get("/api/test-gitlab").json()
    assert body["success"] is True
    assert body["groupPath"] == "demo"


def test_funhouse_survives_non_json_linked_issue(api: TestClient, fake_gitlab: FakeGitLab) -> None:
    _seed_funhouse(fake_gitlab)
    fake_gitlab.body_paths["/projects/10/issues/2"] = lambda: httpx.Response(200, text="<html>sign in</html>")
    response = api.get("/api/funhouse")

    assert response.status_code == 200
    body = response.json()
    assert [t["issue"]["iid"] for t in body["features"]["active"]] == [1]
    assert body["features"]["active"][0]["linkedIssues"] == []
    assert [t["issue"]["iid"] for t in body["features"]["complete"]] == [7]


def test_funhouse_keeps_other_features_when_one_spider_fails(
    api: TestClient,
    fake_gitlab: FakeGitLab,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _seed_funhouse(fake_gitlab)
    fake_gitlab.add_issue(make_issue(3, "", project_id=11))
    fake_gitlab.issues[(11, 7)]["description"] = "see #3"
    real_resolve = service_module.resolve_feature_tree

    async def flaky_resolve(client: GitLabClient, root_issue: GitLabIssue, max_depth: int = 5) -> LinkedIssueNode:
        if root_issue.iid == 1:
            raise RuntimeError("unexpected failure")
        return await real_resolve(client, root_issue, max_depth)

    monkeypatch.setattr(service_module, "resolve_feature_tree", flaky_resolve)
    response = api.get("/api/funhouse")

    assert response.status_code == 200
    body = response.json()
    assert body["features"]["active"][0]["issue"]["iid"] == 1
    assert body["features"]["active"][0]["linkedIssues"] == []
    assert body["features"]["complete"][0]["linkedIssues"][0]["issue"]["iid"] == 3


def test_malformed_feature_list_becomes_502(api: TestClient, fake_gitlab: FakeGitLab) -> None:
    fake_gitlab.body_paths["/groups/g/issues"] = lambda: httpx.Response(200, text="<html>sign in</html>")
    response = api.get("/api/funhouse")
    assert response.status_code == 502
    assert response.json()["code"] == "MALFORMED_RESPONSE"
