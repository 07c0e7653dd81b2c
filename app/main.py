"""
FastAPI 服务入口。

这里做三件事：
- 加载配置（严格校验环境变量）
- 组装外部依赖（HTTP Client / 进程级缓存 / GitLab client）
- 装配路由（health + cache + 聚合接口）

注意：
- 业务流程不写在这里（由 `emporium/service.py` 负责）
- `httpx.AsyncClient` 与 `TTLCache` 都只创建一次，注入到各组件里
"""

from __future__ import annotations

import logging
import os

import httpx
from fastapi import FastAPI

from app.api.routes import build_api_router
from app.api.routes import register_error_handlers
from app.config import load_config_from_env
from app.emporium.service import build_emporium_service
from app.gitlab.client import GitLabClient
from app.infra.cache import TTLCache


def build_app() -> FastAPI:
    """创建并返回 FastAPI app（便于测试/复用）。"""

    # 1) 配置：缺失会直接抛错，启动失败（这是期望行为）
    config = load_config_from_env(os.environ)
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # 2) 可复用的 HTTP client：超时即视为 GitLab 不可达
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(config.request_timeout_seconds))

    # 3) 进程级缓存 + 走缓存的 GitLab client
    cache = TTLCache()
    gitlab_client = GitLabClient(
        base_url=str(config.gitlab_base_url).rstrip("/"),
        private_token=config.gitlab_token,
        http_client=http_client,
        cache=cache,
        ttl=config.cache_ttl,
    )
    service = build_emporium_service(config=config, client=gitlab_client)

    app = FastAPI(title="Bug Emporium", version="0.1.0")
    register_error_handlers(app)
    app.include_router(build_api_router(config=config, service=service, cache=cache))
    return app


# Uvicorn 默认会从模块级变量 `app` 读取 ASGI 应用
app = build_app()
