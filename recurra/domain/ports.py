"""Ports - 外部コラボレーターのインターフェース定義（ABC）

発生処理エンジンが依存する外部ストアとの契約を定義します。
実装クラス（Adapter）はこれらのABCを継承し、全ての抽象メソッドを実装する必要があります。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime

from recurra.domain.models import Notification, ProcessedOccurrence, TaskDraft


class NotificationSource(ABC):
    """通知の読み出し・保存（Firestore等）"""

    @abstractmethod
    def find_active_recurring_with_action(self, now: datetime) -> list[Notification]:
        """削除されておらず、繰り返しルールとアクションを持ち、期限切れでない通知を返す"""
        pass

    @abstractmethod
    def save(self, notification: Notification) -> str:
        """通知を保存。生成されたIDを返す"""
        pass


class UserDirectory(ABC):
    """ユーザー情報の参照"""

    @abstractmethod
    def list_enabled_user_ids(self) -> list[str]:
        """有効なユーザーのID一覧"""
        pass

    @abstractmethod
    def resolve_handle(self, user_id: str) -> str | None:
        """ユーザーIDから表示名（タスクの所有者ハンドル）を解決。存在しない場合は None"""
        pass


class TaskSink(ABC):
    """TODO タスクの作成"""

    @abstractmethod
    def create(
        self,
        owner_handle: str,
        description: str,
        category: str,
        provenance: TaskDraft,
    ) -> str:
        """タスクを作成。task_idを返す（失敗時は例外）"""
        pass


class NotificationStateStore(ABC):
    """ユーザーごとの通知既読状態"""

    @abstractmethod
    def reset_read_state(self, notification_id: str) -> int:
        """通知に紐づく既読状態を全て未読に戻す。更新件数を返す"""
        pass


class OccurrenceLedger(ABC):
    """処理済み発生日の台帳。(notification_id, occurrence_date) は一意"""

    @abstractmethod
    def exists(self, notification_id: str, occurrence_date: date) -> bool:
        """処理済みかどうか"""
        pass

    @abstractmethod
    def mark_processed(
        self, notification_id: str, occurrence_date: date, todos_created: int
    ) -> ProcessedOccurrence:
        """
        処理済みとして記録する。

        Raises:
            OccurrenceAlreadyRecorded: 同じキーのエントリが既に存在する場合
        """
        pass

    @abstractmethod
    def list_for_notification(self, notification_id: str) -> list[ProcessedOccurrence]:
        """通知の処理履歴（監査用）を日付順に返す"""
        pass
