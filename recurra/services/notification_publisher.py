"""NotificationPublisher - 通知の作成

ランダム系ルールの値確定は通知の初回作成時にここで1回だけ行う。
繰り返しなしでアクション付きの通知は、作成と同時に対象ユーザーへタスクを作成する。
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone

from recurra.domain.errors import NotificationValidationError
from recurra.domain.models import Notification, TaskDraft
from recurra.domain.ports import NotificationSource, TaskSink, UserDirectory
from recurra.services.random_initializer import RandomValueInitializer

logger = logging.getLogger(__name__)

SUBJECT_MAX_LENGTH = 255


class NotificationPublisher:
    def __init__(
        self,
        notification_source: NotificationSource,
        user_directory: UserDirectory,
        task_sink: TaskSink,
        initializer: RandomValueInitializer,
    ) -> None:
        self._notifications = notification_source
        self._users = user_directory
        self._tasks = task_sink
        self._initializer = initializer

    def publish(self, draft: Notification) -> Notification:
        """
        通知を検証・保存する。

        Args:
            draft: 作成する通知（id は空で良い）

        Returns:
            Notification: ID とランダム値が確定した保存済みの通知

        Raises:
            NotificationValidationError: 入力が不正な場合
        """
        self._validate(draft)

        rule = draft.recurrence_rule
        if rule is not None:
            rule = self._initializer.initialize(rule)

        notification = replace(
            draft,
            recurrence_rule=rule,
            target_user_ids=frozenset() if draft.is_global else draft.target_user_ids,
            created_at=draft.created_at or datetime.now(timezone.utc),
        )
        notification_id = self._notifications.save(notification)
        notification = replace(notification, id=notification_id)
        logger.info(
            "Published notification %s (global=%s, recurring=%s)",
            notification_id,
            notification.is_global,
            rule is not None,
        )

        if notification.has_action_item and rule is None:
            self._create_immediate_todos(notification)

        return notification

    @staticmethod
    def _validate(draft: Notification) -> None:
        if not draft.subject or not draft.subject.strip():
            raise NotificationValidationError("Subject is required")
        if len(draft.subject) > SUBJECT_MAX_LENGTH:
            raise NotificationValidationError(
                f"Subject must not exceed {SUBJECT_MAX_LENGTH} characters"
            )
        if not draft.message_body or not draft.message_body.strip():
            raise NotificationValidationError("Message body is required")
        if not draft.is_global and not draft.target_user_ids:
            raise NotificationValidationError(
                "Target user IDs required for non-global notifications"
            )

    def _create_immediate_todos(self, notification: Notification) -> int:
        """
        繰り返しなし通知のタスクを即時作成する。

        再実行の仕組み（台帳）がないため、ユーザー単位の失敗はログに残して続行する。
        """
        action = notification.action_item
        if notification.is_global:
            user_ids = sorted(set(self._users.list_enabled_user_ids()))
        else:
            user_ids = sorted(notification.target_user_ids)

        provenance = TaskDraft(source_notification_id=notification.id)
        created = 0
        for user_id in user_ids:
            try:
                handle = self._users.resolve_handle(user_id)
                if handle is None:
                    logger.warning(
                        "User %s not found, skipping TODO creation for notification %s",
                        user_id,
                        notification.id,
                    )
                    continue
                self._tasks.create(handle, action.description, action.category, provenance)
                created += 1
            except Exception:
                logger.exception(
                    "Failed to create immediate TODO for notification %s user %s",
                    notification.id,
                    user_id,
                )

        logger.info(
            "Created %d immediate TODO tasks for notification %s",
            created,
            notification.id,
        )
        return created
