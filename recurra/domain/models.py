"""ドメインモデル - 外部依存なしのデータ構造"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone

from recurra.domain.recurrence import RecurrenceRule


@dataclass(frozen=True)
class ActionItem:
    """通知に添付されるアクション（TODO タスクの元になる）"""

    description: str  # 例: "週報を提出する"
    category: str = ""  # 例: "Work"

    @property
    def is_actionable(self) -> bool:
        return bool(self.description and self.description.strip())


@dataclass(frozen=True)
class Notification:
    """通知（コアからは読み取り専用で参照する）"""

    id: str  # 永続化前は空文字列
    subject: str
    message_body: str
    is_global: bool = False
    target_user_ids: frozenset[str] = field(default_factory=frozenset)
    expires_at: datetime | None = None
    recurrence_rule: RecurrenceRule | None = None
    action_item: ActionItem | None = None
    deleted: bool = False
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        # タイムゾーンなしの期限は UTC として扱う
        if self.expires_at is not None and self.expires_at.tzinfo is None:
            object.__setattr__(
                self, "expires_at", self.expires_at.replace(tzinfo=timezone.utc)
            )

    @property
    def has_action_item(self) -> bool:
        return self.action_item is not None and self.action_item.is_actionable

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def is_due_candidate(self, now: datetime) -> bool:
        """発生処理の対象候補か（削除されておらず、繰り返し・アクションあり、期限内）"""
        return (
            not self.deleted
            and self.recurrence_rule is not None
            and self.has_action_item
            and not self.is_expired(now)
        )


@dataclass(frozen=True)
class TaskDraft:
    """通知から生成されるタスクの由来情報（provenance）"""

    source_notification_id: str
    occurrence_date: date | None = None  # 即時作成（繰り返しなし）の場合は None
    created_from_notification: bool = True


@dataclass(frozen=True)
class ProcessedOccurrence:
    """台帳エントリ。(notification_id, occurrence_date) ごとに高々1件"""

    notification_id: str
    occurrence_date: date
    processed_at: datetime
    todos_created: int


@dataclass(frozen=True)
class ProcessingResult:
    """繰り返し通知処理1回分の集計結果"""

    notifications_processed: int = 0
    todos_created: int = 0
    errors: int = 0
    error_messages: tuple[str, ...] = ()

    def add_notification(self, todos_created: int) -> ProcessingResult:
        return replace(
            self,
            notifications_processed=self.notifications_processed + 1,
            todos_created=self.todos_created + todos_created,
        )

    def add_todos(self, todos_created: int) -> ProcessingResult:
        """通知を処理済みに数えずにタスク数だけ加算（台帳書き込み失敗時）"""
        return replace(self, todos_created=self.todos_created + todos_created)

    def add_error(self, message: str) -> ProcessingResult:
        return replace(
            self,
            errors=self.errors + 1,
            error_messages=(*self.error_messages, message),
        )

    def to_dict(self) -> dict:
        return {
            "notifications_processed": self.notifications_processed,
            "todos_created": self.todos_created,
            "errors": self.errors,
            "error_messages": list(self.error_messages),
        }
