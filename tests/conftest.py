"""共通テストフィクスチャ

全テストから利用可能なモックオブジェクト・インメモリ実装とサンプルデータを提供。

モックの作成:
- MagicMock(spec=ABC) でABCのメソッドシグネチャを保持
- 台帳・タスクなど状態の検証が必要なものはインメモリ実装を使う
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from unittest.mock import MagicMock

import pytest

from recurra.domain.errors import OccurrenceAlreadyRecorded
from recurra.domain.models import (
    ActionItem,
    Notification,
    ProcessedOccurrence,
    TaskDraft,
)
from recurra.domain.ports import (
    NotificationSource,
    NotificationStateStore,
    OccurrenceLedger,
    TaskSink,
    UserDirectory,
)
from recurra.domain.recurrence import Daily, Monthly, Weekly
from recurra.services.recurrence_evaluator import RecurrenceEvaluator

# 2024-03-15 は金曜日
TODAY = date(2024, 3, 15)
NOW = datetime(2024, 3, 15, 1, 0, tzinfo=timezone.utc)


# ========== インメモリ実装 ==========


class InMemoryLedger(OccurrenceLedger):
    """(notification_id, occurrence_date) の一意制約を持つ台帳"""

    def __init__(self) -> None:
        self.entries: dict[tuple[str, date], ProcessedOccurrence] = {}

    def exists(self, notification_id: str, occurrence_date: date) -> bool:
        return (notification_id, occurrence_date) in self.entries

    def mark_processed(
        self, notification_id: str, occurrence_date: date, todos_created: int
    ) -> ProcessedOccurrence:
        key = (notification_id, occurrence_date)
        if key in self.entries:
            raise OccurrenceAlreadyRecorded(notification_id, occurrence_date)
        entry = ProcessedOccurrence(notification_id, occurrence_date, NOW, todos_created)
        self.entries[key] = entry
        return entry

    def list_for_notification(self, notification_id: str) -> list[ProcessedOccurrence]:
        return sorted(
            (e for e in self.entries.values() if e.notification_id == notification_id),
            key=lambda e: e.occurrence_date,
        )


class InMemoryTaskSink(TaskSink):
    def __init__(self) -> None:
        self.tasks: list[dict] = []

    def create(
        self, owner_handle: str, description: str, category: str, provenance: TaskDraft
    ) -> str:
        task_id = f"task-{len(self.tasks) + 1}"
        self.tasks.append(
            {
                "id": task_id,
                "owner": owner_handle,
                "description": description,
                "category": category,
                "provenance": provenance,
            }
        )
        return task_id


class InMemoryUserDirectory(UserDirectory):
    def __init__(self, users: dict[str, str], disabled: set[str] | None = None) -> None:
        self._users = users  # user_id -> username
        self._disabled = disabled or set()

    def list_enabled_user_ids(self) -> list[str]:
        return [uid for uid in self._users if uid not in self._disabled]

    def resolve_handle(self, user_id: str) -> str | None:
        return self._users.get(user_id)


# ========== サンプルデータ ==========


@pytest.fixture
def sample_action() -> ActionItem:
    """サンプルアクション"""
    return ActionItem(description="週報を提出する", category="Work")


@pytest.fixture
def daily_global_notification(sample_action) -> Notification:
    """サンプル通知: 毎日・全体向け"""
    return Notification(
        id="N-DAILY",
        subject="日次リマインダー",
        message_body="毎日の確認事項です",
        is_global=True,
        recurrence_rule=Daily(),
        action_item=sample_action,
    )


@pytest.fixture
def weekly_targeted_notification(sample_action) -> Notification:
    """サンプル通知: 毎週金曜・対象者指定"""
    return Notification(
        id="N-WEEKLY",
        subject="週報",
        message_body="今週の週報を提出してください",
        target_user_ids=frozenset({"u2", "u1"}),
        recurrence_rule=Weekly(day_of_week=5),
        action_item=sample_action,
    )


@pytest.fixture
def monthly_notification(sample_action) -> Notification:
    """サンプル通知: 毎月15日・全体向け"""
    return Notification(
        id="N-MONTHLY",
        subject="月次締め",
        message_body="経費精算の締め日です",
        is_global=True,
        recurrence_rule=Monthly(day_of_month=15),
        action_item=sample_action,
    )


# ========== モック・インメモリフィクスチャ ==========


@pytest.fixture
def mock_source() -> MagicMock:
    """NotificationSource のモック"""
    mock = MagicMock(spec=NotificationSource)
    mock.find_active_recurring_with_action.return_value = []
    mock.save.return_value = "N-NEW"
    return mock


@pytest.fixture
def mock_state_store() -> MagicMock:
    """NotificationStateStore のモック"""
    mock = MagicMock(spec=NotificationStateStore)
    mock.reset_read_state.return_value = 0
    return mock


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def task_sink() -> InMemoryTaskSink:
    return InMemoryTaskSink()


@pytest.fixture
def user_directory() -> InMemoryUserDirectory:
    """有効なユーザー3人（u1〜u3）と無効なユーザー1人（u4）"""
    return InMemoryUserDirectory(
        {"u1": "alice", "u2": "bob", "u3": "carol", "u4": "dave"},
        disabled={"u4"},
    )


@pytest.fixture
def evaluator() -> RecurrenceEvaluator:
    return RecurrenceEvaluator()
