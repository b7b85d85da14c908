"""FastAPI 依存性注入

設定と RecurrenceEvaluator・台帳の初期化を担当する。
各ルートは Depends() でこのモジュールの関数を呼び出してインスタンスを受け取る。
"""

from __future__ import annotations

import logging
from functools import lru_cache

from recurra.config import AppConfig, ZoneConfig
from recurra.domain.ports import OccurrenceLedger
from recurra.entrypoints.factory import create_ledger
from recurra.services.recurrence_evaluator import RecurrenceEvaluator

logger = logging.getLogger(__name__)


@lru_cache
def get_evaluator() -> RecurrenceEvaluator:
    """予測は Firestore を使わないため PROJECT_ID なしでも動作させる"""
    zone = ZoneConfig.from_env().system_zone
    logger.info("RecurrenceEvaluator initialized: system_tz=%s", zone)
    return RecurrenceEvaluator(system_zone=zone)


@lru_cache
def get_ledger() -> OccurrenceLedger:
    return create_ledger(AppConfig.from_env())
