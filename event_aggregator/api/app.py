"""
FastAPI 应用配置

配置 CORS、路由注册。
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import get_config
from .routers import averages, events

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    config = get_config()

    app = FastAPI(
        title="Event Aggregator",
        description="时序事件与窗口均值查询 API",
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.include_router(events.router)
    app.include_router(averages.router)

    @app.get("/api/health", tags=["health"])
    async def health():
        return {"status": "ok"}

    return app
