from __future__ import annotations

import httpx
import pytest

from app.config import CacheTTLConfig
from app.gitlab.client import GitLabClient
from app.infra.cache import TTLCache
from tests.fakes import BASE_URL
from tests.fakes import FakeClock
from tests.fakes import FakeGitLab


@pytest.fixture
def fake_gitlab() -> FakeGitLab:
    return FakeGitLab()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> TTLCache:
    return TTLCache(clock=clock)


@pytest.fixture
def gitlab_client(fake_gitlab: FakeGitLab, cache: TTLCache) -> GitLabClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_gitlab.handler))
    return GitLabClient(
        base_url=BASE_URL,
        private_token="test-token",
        http_client=http_client,
        cache=cache,
        ttl=CacheTTLConfig(issues=600, projects=3600, users=86400),
    )
