"""処理履歴 API ルート

GET /api/notifications/{id}/occurrences  → 200 [ProcessedOccurrence...]
"""

from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from recurra.domain.ports import OccurrenceLedger
from recurra.entrypoints.api.deps import get_ledger

router = APIRouter(prefix="/notifications", tags=["occurrences"])


class OccurrenceResponse(BaseModel):
    notification_id: str
    occurrence_date: date
    processed_at: datetime | None
    todos_created: int


@router.get("/{notification_id}/occurrences", response_model=list[OccurrenceResponse])
async def list_occurrences(
    notification_id: str,
    ledger: OccurrenceLedger = Depends(get_ledger),
) -> list[OccurrenceResponse]:
    """通知の処理済み発生日を古い順に返す"""
    return [
        OccurrenceResponse(
            notification_id=o.notification_id,
            occurrence_date=o.occurrence_date,
            processed_at=o.processed_at,
            todos_created=o.todos_created,
        )
        for o in ledger.list_for_notification(notification_id)
    ]
