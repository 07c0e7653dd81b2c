"""
应用配置加载。

设计目标：
- **严格**：缺少必要环境变量就直接报错（避免“看起来跑了其实没配置好”）
- **类型安全**：使用 Pydantic 校验 URL/字符串等，减少运行时踩坑
- **可测试**：核心加载函数接收 `environ` 显式输入，便于单元测试
"""

from __future__ import annotations

from collections.abc import Mapping

from pydantic import BaseModel, Field, HttpUrl


class CacheTTLConfig(BaseModel):
    """不同数据类别的缓存窗口（秒）：issue 列表短，项目名/用户信息这类慢变数据长。"""

    issues: float = Field(default=600.0, gt=0)
    projects: float = Field(default=6 * 3600.0, gt=0)
    users: float = Field(default=24 * 3600.0, gt=0)


class AppConfig(BaseModel):
    """应用运行所需配置（GitLab 三项必填，其余有默认值）。"""

    gitlab_base_url: HttpUrl
    gitlab_token: str
    gitlab_group_id: str
    emporium_label: str = "emporium"
    funhouse_label: str = "funhouse"
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    spider_max_depth: int = Field(default=5, ge=0)
    log_level: str = "INFO"
    cache_ttl: CacheTTLConfig = Field(default_factory=CacheTTLConfig)


def _optional_number(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"Env var {key} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"Env var {key} must be > 0, got {raw!r}")
    return value


def load_config_from_env(environ: Mapping[str, str]) -> AppConfig:
    """
    从环境变量加载并校验配置。

    - **输入**：`environ`（例如 `os.environ`）
    - **输出**：`AppConfig`
    - **失败**：必填项缺失/为空、数值项非法则抛 `ValueError`
    """

    required_keys: tuple[str, ...] = (
        "GITLAB_BASE_URL",
        "GITLAB_TOKEN",
        "GITLAB_GROUP_ID",
    )

    missing: list[str] = [key for key in required_keys if key not in environ or not environ[key]]
    if missing:
        raise ValueError(f"Missing required env vars: {', '.join(missing)}")

    depth_raw = environ.get("SPIDER_MAX_DEPTH") or "5"
    if not (depth_raw.isascii() and depth_raw.isdigit()):
        raise ValueError(f"Env var SPIDER_MAX_DEPTH must be a non-negative integer, got {depth_raw!r}")

    cache_ttl = CacheTTLConfig(
        issues=_optional_number(environ, "CACHE_TTL_ISSUES_SECONDS", 600.0),
        projects=_optional_number(environ, "CACHE_TTL_PROJECTS_SECONDS", 6 * 3600.0),
        users=_optional_number(environ, "CACHE_TTL_USERS_SECONDS", 24 * 3600.0),
    )

    # 交给 Pydantic 做类型校验（例如 URL 合法性）
    return AppConfig(
        gitlab_base_url=environ["GITLAB_BASE_URL"],
        gitlab_token=environ["GITLAB_TOKEN"],
        gitlab_group_id=environ["GITLAB_GROUP_ID"],
        emporium_label=environ.get("EMPORIUM_LABEL") or "emporium",
        funhouse_label=environ.get("FUNHOUSE_LABEL") or "funhouse",
        request_timeout_seconds=_optional_number(environ, "GITLAB_TIMEOUT_SECONDS", 30.0),
        spider_max_depth=int(depth_raw),
        log_level=(environ.get("LOG_LEVEL") or "INFO").upper(),
        cache_ttl=cache_ttl,
    )
