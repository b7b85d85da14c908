"""Firestore Repository Adapter

繰り返し通知処理が使う全 Port の Firestore 実装。

Firestore コレクション構造:
  notifications/{notificationId}                      ← 通知（繰り返しルール・アクションを含む）
  users/{uid}                                         ← ユーザー（username, enabled）
  tasks/{taskId}                                      ← TODO タスク
  notification_states/{stateId}                       ← ユーザーごとの既読状態
  processed_occurrences/{notificationId}_{YYYY-MM-DD} ← 処理済み発生日の台帳
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any

from google.api_core.exceptions import AlreadyExists
from google.cloud import firestore

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
from recurra.domain.recurrence import rule_from_dict, rule_to_dict

logger = logging.getLogger(__name__)

_NOTIFICATIONS = "notifications"
_USERS = "users"
_TASKS = "tasks"
_NOTIFICATION_STATES = "notification_states"
_PROCESSED_OCCURRENCES = "processed_occurrences"

# Firestore のバッチ書き込みは1回あたり最大500件
_BATCH_LIMIT = 500


class FirestoreNotificationRepository(NotificationSource):
    """
    Firestore を使った NotificationSource 実装。

    「空文字でない」「null または未来」といった条件は Firestore のクエリで
    表現できないため、deleted == False で絞った後に Python 側で判定する。
    """

    def __init__(self, db: firestore.Client) -> None:
        """
        Args:
            db: 初期化済みの Firestore クライアント
        """
        self._db = db

    def find_active_recurring_with_action(self, now: datetime) -> list[Notification]:
        snaps = (
            self._db.collection(_NOTIFICATIONS)
            .where("deleted", "==", False)
            .stream()
        )
        notifications = []
        for snap in snaps:
            data = snap.to_dict() or {}
            if not data.get("recurrence_rule"):
                continue
            try:
                notification = self._dict_to_notification(snap.id, data)
            except ValueError as e:
                # 壊れたルールが1件あっても他の通知の処理は止めない
                logger.warning("Skipping notification %s with invalid data: %s", snap.id, e)
                continue
            if notification.is_due_candidate(now):
                notifications.append(notification)

        logger.debug("Found %d active recurring notifications", len(notifications))
        return notifications

    def save(self, notification: Notification) -> str:
        """通知を保存。id が空なら新規作成し、採番されたIDを返す"""
        data = self._notification_to_dict(notification)
        col = self._db.collection(_NOTIFICATIONS)
        if notification.id:
            col.document(notification.id).set(data)
            notification_id = notification.id
        else:
            notification_id = col.add(data)[1].id
        logger.info("Saved notification: notification_id=%s", notification_id)
        return notification_id

    # ── 変換ヘルパー ──────────────────────────────────────────────────────────

    @staticmethod
    def _notification_to_dict(notification: Notification) -> dict:
        action = notification.action_item
        rule = notification.recurrence_rule
        return {
            "subject": notification.subject,
            "message_body": notification.message_body,
            "is_global": notification.is_global,
            "target_user_ids": sorted(notification.target_user_ids),
            "expires_at": notification.expires_at,
            "recurrence_rule": rule_to_dict(rule) if rule is not None else None,
            "action_item": (
                {"description": action.description, "category": action.category}
                if action is not None
                else None
            ),
            "deleted": notification.deleted,
            "created_at": notification.created_at or firestore.SERVER_TIMESTAMP,
        }

    @staticmethod
    def _dict_to_notification(doc_id: str, data: dict) -> Notification:
        action_data = data.get("action_item")
        return Notification(
            id=doc_id,
            subject=data.get("subject", ""),
            message_body=data.get("message_body", ""),
            is_global=bool(data.get("is_global", False)),
            target_user_ids=frozenset(data.get("target_user_ids") or []),
            expires_at=data.get("expires_at"),
            recurrence_rule=rule_from_dict(data.get("recurrence_rule")),
            action_item=(
                ActionItem(
                    description=action_data.get("description", ""),
                    category=action_data.get("category", ""),
                )
                if action_data
                else None
            ),
            deleted=bool(data.get("deleted", False)),
            created_at=data.get("created_at"),
        )


class FirestoreUserDirectory(UserDirectory):
    """users/{uid} を参照する UserDirectory 実装"""

    def __init__(self, db: firestore.Client) -> None:
        self._db = db

    def list_enabled_user_ids(self) -> list[str]:
        snaps = self._db.collection(_USERS).where("enabled", "==", True).stream()
        return [snap.id for snap in snaps]

    def resolve_handle(self, user_id: str) -> str | None:
        snap = self._db.collection(_USERS).document(user_id).get()
        if not snap.exists:
            return None
        return (snap.to_dict() or {}).get("username") or None


class FirestoreTaskSink(TaskSink):
    def __init__(self, db: firestore.Client) -> None:
        self._db = db

    def create(
        self,
        owner_handle: str,
        description: str,
        category: str,
        provenance: TaskDraft,
    ) -> str:
        occurrence_date = provenance.occurrence_date
        ref = self._db.collection(_TASKS).add(
            {
                "owner": owner_handle,
                "description": description,
                "category": category,
                "completed": False,
                "order": 0,
                "parent_id": None,
                "created_from_notification": provenance.created_from_notification,
                "source_notification_id": provenance.source_notification_id,
                "occurrence_date": (
                    occurrence_date.isoformat() if occurrence_date else None
                ),
                "created_at": firestore.SERVER_TIMESTAMP,
            }
        )[1]
        logger.info(
            "Created task: task_id=%s, owner=%s, notification_id=%s",
            ref.id,
            owner_handle,
            provenance.source_notification_id,
        )
        return ref.id


class FirestoreNotificationStateStore(NotificationStateStore):
    """notification_states の既読フラグをバッチ更新でリセットする"""

    def __init__(self, db: firestore.Client) -> None:
        self._db = db

    def reset_read_state(self, notification_id: str) -> int:
        snaps = (
            self._db.collection(_NOTIFICATION_STATES)
            .where("notification_id", "==", notification_id)
            .where("read", "==", True)
            .stream()
        )

        count = 0
        batch = self._db.batch()
        pending = 0
        for snap in snaps:
            batch.update(snap.reference, {"read": False, "read_at": None})
            count += 1
            pending += 1
            if pending == _BATCH_LIMIT:
                batch.commit()
                batch = self._db.batch()
                pending = 0
        if pending:
            batch.commit()

        logger.info(
            "Reset read state: notification_id=%s, states=%d", notification_id, count
        )
        return count


class FirestoreOccurrenceLedger(OccurrenceLedger):
    """
    Firestore を使った OccurrenceLedger 実装。

    ドキュメントID を {notification_id}_{YYYY-MM-DD} に固定し、
    DocumentReference.create()（存在すれば失敗）で一意制約を表現する。
    """

    def __init__(self, db: firestore.Client) -> None:
        self._db = db

    def exists(self, notification_id: str, occurrence_date: date) -> bool:
        return self._ref(notification_id, occurrence_date).get().exists

    def mark_processed(
        self,
        notification_id: str,
        occurrence_date: date,
        todos_created: int,
    ) -> ProcessedOccurrence:
        processed_at = datetime.now(timezone.utc)
        try:
            self._ref(notification_id, occurrence_date).create(
                {
                    "notification_id": notification_id,
                    "occurrence_date": occurrence_date.isoformat(),
                    "processed_at": processed_at,
                    "todos_created": todos_created,
                }
            )
        except AlreadyExists as e:
            raise OccurrenceAlreadyRecorded(notification_id, occurrence_date) from e

        logger.info(
            "Recorded occurrence: notification_id=%s, date=%s, todos=%d",
            notification_id,
            occurrence_date,
            todos_created,
        )
        return ProcessedOccurrence(
            notification_id=notification_id,
            occurrence_date=occurrence_date,
            processed_at=processed_at,
            todos_created=todos_created,
        )

    def list_for_notification(self, notification_id: str) -> list[ProcessedOccurrence]:
        """通知の処理履歴を発生日の昇順で取得"""
        snaps = (
            self._db.collection(_PROCESSED_OCCURRENCES)
            .where("notification_id", "==", notification_id)
            .stream()
        )
        occurrences = [self._dict_to_occurrence(snap.to_dict() or {}) for snap in snaps]
        return sorted(occurrences, key=lambda o: o.occurrence_date)

    def _ref(self, notification_id: str, occurrence_date: date) -> Any:
        return self._db.collection(_PROCESSED_OCCURRENCES).document(
            f"{notification_id}_{occurrence_date.isoformat()}"
        )

    @staticmethod
    def _dict_to_occurrence(data: dict) -> ProcessedOccurrence:
        return ProcessedOccurrence(
            notification_id=data.get("notification_id", ""),
            occurrence_date=date.fromisoformat(data["occurrence_date"]),
            processed_at=data.get("processed_at"),
            todos_created=int(data.get("todos_created", 0)),
        )
