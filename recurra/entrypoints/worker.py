"""Cloud Scheduler ワーカー エントリーポイント

Cloud Scheduler から毎日 HTTP POST を受け取り、繰り返し通知の TODO 作成を実行する。

スケジュール:
  RECURRING_ACTION_TODO_CRON（デフォルト "0 1 * * *"、SYSTEM_TIMEZONE 基準）で
  Cloud Scheduler ジョブを作成し、POST /worker/recurring-notifications を呼ぶ。
  同じ日に複数回呼ばれても台帳により重複作成はされない。

受け取るペイロード（JSON、省略可）:
  {
    "date": "2024-03-15"   ← 処理対象日（再実行・バックフィル用）
  }
"""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, HTTPException, Request, status

from recurra.entrypoints.factory import create_processor

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_target_date(request: Request) -> date | None:
    body = await request.body()
    if not body:
        return None
    try:
        payload = await request.json()
        raw = payload.get("date") if isinstance(payload, dict) else None
        if not raw:
            return None
        return date.fromisoformat(raw)
    except (TypeError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Body must be JSON like {\"date\": \"YYYY-MM-DD\"}",
        ) from e


@router.post("/recurring-notifications", status_code=status.HTTP_200_OK)
async def process_recurring_notifications(request: Request) -> dict:
    """
    繰り返し通知の TODO 作成エンドポイント（Cloud Scheduler から呼び出し）。

    通知単位のエラーは結果に集約されるため 200 を返す。
    プロセッサの組み立て（設定・Firestore 接続）に失敗した場合のみ 500。
    """
    target_date = await _read_target_date(request)

    try:
        processor = create_processor()
    except Exception as e:
        logger.exception("Failed to create occurrence processor")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Processor initialization failed: {e}",
        ) from e

    result = processor.process_recurring_notifications(target_date)
    return {"status": "ok", **result.to_dict()}
