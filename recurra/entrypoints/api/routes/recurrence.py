"""繰り返しルール API ルート

POST /api/recurrence/forecast  → 200 { rule, dates: [...] }
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from recurra.domain.errors import RecurraError
from recurra.domain.recurrence import rule_from_dict, rule_to_dict
from recurra.entrypoints.api.deps import get_evaluator
from recurra.services.recurrence_evaluator import RecurrenceEvaluator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recurrence", tags=["recurrence"])


class ForecastRequest(BaseModel):
    rule: dict[str, Any]  # Firestore に保存されている形式（kind + 各フィールド）
    from_date: date | None = None
    count: int = Field(default=5, ge=1, le=100)
    time_zone: str | None = None


class ForecastResponse(BaseModel):
    rule: dict[str, Any]
    dates: list[date]


@router.post("/forecast", response_model=ForecastResponse)
async def forecast(
    body: ForecastRequest,
    evaluator: RecurrenceEvaluator = Depends(get_evaluator),
) -> ForecastResponse:
    """
    ルールの今後の発生日を返す。

    ランダム系ルールは値が確定済み（random_values_initialized=true）である必要がある。
    """
    time_zone = None
    if body.time_zone:
        try:
            time_zone = ZoneInfo(body.time_zone)
        except (ZoneInfoNotFoundError, ValueError):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Unknown time zone: {body.time_zone}",
            )

    try:
        rule = rule_from_dict(body.rule)
        if rule is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Recurrence rule is required",
            )
        dates = evaluator.forecast(
            rule, body.from_date or date.today(), body.count, time_zone
        )
    except RecurraError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        )

    logger.debug("Forecast %d dates for %s", len(dates), rule)
    return ForecastResponse(rule=rule_to_dict(rule), dates=dates)
