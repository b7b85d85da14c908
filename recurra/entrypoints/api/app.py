"""FastAPI アプリケーション

繰り返し通知の TODO 作成バックエンド。
Cloud Run Service として動作し、Cloud Scheduler からワーカーが呼ばれる。

エンドポイント一覧:
  POST   /worker/recurring-notifications   ← Cloud Scheduler（日次）
  POST   /api/recurrence/forecast
  GET    /api/notifications/{id}/occurrences
  GET    /health
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from recurra.entrypoints import worker
from recurra.entrypoints.api.routes import occurrences, recurrence
from recurra.logging_config import setup_logging

# ── ロギング初期化 ───────────────────────────────────────────────────────────
setup_logging()
logger = logging.getLogger(__name__)

# ── FastAPI アプリ ───────────────────────────────────────────────────────────
app = FastAPI(
    title="Recurra API",
    description="繰り返し通知から TODO タスクを作成するバックエンド API",
    version="1.0.0",
)


# ── グローバル例外ミドルウェア ──────────────────────────────────────────────────
@app.middleware("http")
async def _catch_unhandled_exceptions(
    request: Request, call_next: Callable[[Request], Response]
) -> Response:
    try:
        return await call_next(request)
    except Exception as exc:
        logger.error(
            "Unhandled exception: %s %s - %s",
            request.method,
            request.url.path,
            exc,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )


# ── ルーター登録 ─────────────────────────────────────────────────────────────
_PREFIX = "/api"

app.include_router(recurrence.router, prefix=_PREFIX)
app.include_router(occurrences.router, prefix=_PREFIX)

# ── Cloud Scheduler ワーカールート（/worker/*）────────────────────────────────
app.include_router(worker.router, prefix="/worker")


@app.get("/health")
async def health() -> dict:
    """ヘルスチェックエンドポイント（Cloud Run の起動確認用）"""
    return {"status": "ok"}


logger.info("Recurra API started")
