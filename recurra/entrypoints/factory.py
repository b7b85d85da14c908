"""Factory - 依存性注入の組み立て

Firestore Adapter と Service を組み立て、OccurrenceProcessor / NotificationPublisher を生成する。
"""

import logging
import random

from google.cloud import firestore

from recurra.adapters.firestore_repository import (
    FirestoreNotificationRepository,
    FirestoreNotificationStateStore,
    FirestoreOccurrenceLedger,
    FirestoreTaskSink,
    FirestoreUserDirectory,
)
from recurra.config import AppConfig
from recurra.services.notification_publisher import NotificationPublisher
from recurra.services.occurrence_processor import OccurrenceProcessor
from recurra.services.random_initializer import RandomValueInitializer
from recurra.services.recurrence_evaluator import RecurrenceEvaluator

logger = logging.getLogger(__name__)


def create_processor(config: AppConfig | None = None) -> OccurrenceProcessor:
    """
    OccurrenceProcessorを生成（全依存を組み立て）。

    Args:
        config: アプリケーション設定（Noneの場合は環境変数から読み込み）

    Returns:
        OccurrenceProcessor: 実行可能なプロセッサ

    Raises:
        ValueError: 必須設定が不足している場合
    """
    if config is None:
        config = AppConfig.from_env()

    logger.info(
        "Creating occurrence processor: project_id=%s, system_tz=%s, recipient_tz=%s",
        config.project_id,
        config.system_timezone,
        config.recipient_timezone,
    )

    db = firestore.Client(project=config.project_id)

    return OccurrenceProcessor(
        notification_source=FirestoreNotificationRepository(db),
        user_directory=FirestoreUserDirectory(db),
        task_sink=FirestoreTaskSink(db),
        state_store=FirestoreNotificationStateStore(db),
        ledger=FirestoreOccurrenceLedger(db),
        evaluator=create_evaluator(config),
        recipient_zone=config.recipient_zone,
    )


def create_publisher(config: AppConfig | None = None) -> NotificationPublisher:
    """NotificationPublisherを生成。RECURRENCE_RANDOM_SEED があれば乱数を固定する"""
    if config is None:
        config = AppConfig.from_env()

    db = firestore.Client(project=config.project_id)
    rng = random.Random(config.random_seed) if config.random_seed is not None else None

    return NotificationPublisher(
        notification_source=FirestoreNotificationRepository(db),
        user_directory=FirestoreUserDirectory(db),
        task_sink=FirestoreTaskSink(db),
        initializer=RandomValueInitializer(rng),
    )


def create_ledger(config: AppConfig | None = None) -> FirestoreOccurrenceLedger:
    """処理履歴の参照用に台帳を生成"""
    if config is None:
        config = AppConfig.from_env()
    return FirestoreOccurrenceLedger(firestore.Client(project=config.project_id))


def create_evaluator(config: AppConfig) -> RecurrenceEvaluator:
    return RecurrenceEvaluator(system_zone=config.system_zone)
