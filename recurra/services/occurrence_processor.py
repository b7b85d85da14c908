"""OccurrenceProcessor - 繰り返し通知の発生処理ワークフロー

Ports（ABC）にのみ依存し、ストレージの実装詳細からは独立。
日次のスケジューラー（Cloud Scheduler → /worker）と管理者の手動実行（CLI）の
両方から同じコードが呼ばれる。
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime, tzinfo

from recurra.domain.errors import (
    FanOutError,
    LedgerWriteError,
    OccurrenceAlreadyRecorded,
    StateResetError,
)
from recurra.domain.models import Notification, ProcessingResult, TaskDraft
from recurra.domain.ports import (
    NotificationSource,
    NotificationStateStore,
    OccurrenceLedger,
    TaskSink,
    UserDirectory,
)
from recurra.services.recurrence_evaluator import RecurrenceEvaluator

logger = logging.getLogger(__name__)


class OccurrenceProcessor:
    """
    今日が発生日の繰り返し通知について、対象ユーザー全員に TODO タスクを1件ずつ作成する。

    処理フロー:
    1. 候補の取得（削除なし・繰り返しあり・アクションあり・期限内）
    2. 今日が発生日 かつ 台帳に未記録 のものに絞り込み
    3. 各通知について:
       - 対象ユーザーの解決（グローバルなら有効な全ユーザー）
       - ユーザーごとにタスク作成（1件でも失敗したらその通知は中止、台帳に記録しない）
       - 既読状態のリセット（失敗してもログのみ）
       - 台帳への記録（タスク作成が全て成功した後にのみ）
    4. 集計結果を返す

    台帳への記録がタスク作成の成功後にしか行われないため、同じ日に何度実行しても
    成功済みの通知はスキップされ、失敗した通知は次回まとめて再実行される。
    """

    def __init__(
        self,
        notification_source: NotificationSource,
        user_directory: UserDirectory,
        task_sink: TaskSink,
        state_store: NotificationStateStore,
        ledger: OccurrenceLedger,
        evaluator: RecurrenceEvaluator,
        recipient_zone: tzinfo | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Args:
            notification_source: 通知の読み出し
            user_directory: ユーザー情報の参照
            task_sink: タスク作成
            state_store: 既読状態の管理
            ledger: 処理済み発生日の台帳
            evaluator: 繰り返しルールの評価
            recipient_zone: 受信者のタイムゾーン（None の場合は変換しない）
            clock: 現在時刻の取得（テスト用に差し替え可能）
        """
        self._notifications = notification_source
        self._users = user_directory
        self._tasks = task_sink
        self._states = state_store
        self._ledger = ledger
        self._evaluator = evaluator
        self._recipient_zone = recipient_zone
        self._clock = clock or (lambda: datetime.now(evaluator.system_zone))

    def process_recurring_notifications(
        self, today: date | None = None
    ) -> ProcessingResult:
        """
        今日が発生日の繰り返し通知を全て処理する。例外は外に投げず、結果に集約する。

        Args:
            today: 処理対象日（None の場合は時計から取得）

        Returns:
            ProcessingResult: 集計結果
        """
        now = self._clock()
        today = today or now.date()
        logger.info("Starting recurring action TODO processing for date: %s", today)

        result = ProcessingResult()

        try:
            due, result = self.find_due_notifications(today, now, result)
        except Exception as e:
            logger.exception("Failed to discover recurring notifications: %s", e)
            return result.add_error(f"Failed to discover recurring notifications: {e}")

        logger.info("Found %d notifications due for processing", len(due))

        for notification in due:
            result = self._process_single(notification, today, result)

        logger.info(
            "Completed recurring action TODO processing. "
            "Notifications: %d, TODOs created: %d, Errors: %d",
            result.notifications_processed,
            result.todos_created,
            result.errors,
        )
        return result

    def find_due_notifications(
        self,
        today: date,
        now: datetime,
        result: ProcessingResult | None = None,
    ) -> tuple[list[Notification], ProcessingResult]:
        """
        今日が発生日で、まだ処理されていない通知を返す。

        ルール評価に失敗した通知はその通知だけエラーとして結果に記録し、対象から外す。
        """
        result = result or ProcessingResult()
        candidates = self._notifications.find_active_recurring_with_action(now)

        due: list[Notification] = []
        for notification in candidates:
            try:
                if not notification.is_due_candidate(now):
                    logger.debug("Skipping ineligible notification %s", notification.id)
                    continue
                if not self._evaluator.should_deliver_on(
                    notification.recurrence_rule, today, self._recipient_zone
                ):
                    continue
                if self._ledger.exists(notification.id, today):
                    logger.debug(
                        "Occurrence already processed: notification=%s, date=%s",
                        notification.id,
                        today,
                    )
                    continue
            except Exception as e:
                logger.warning(
                    "Error evaluating recurrence rule for notification %s: %s",
                    notification.id,
                    e,
                )
                result = result.add_error(
                    f"Failed to process notification {notification.id}: {e}"
                )
                continue

            due.append(notification)

        return due, result

    def resolve_target_user_ids(self, notification: Notification) -> list[str]:
        """グローバル通知なら有効な全ユーザー、それ以外は通知の対象ユーザー"""
        if notification.is_global:
            user_ids = self._users.list_enabled_user_ids()
        else:
            user_ids = notification.target_user_ids
        return sorted(set(user_ids))

    def create_todos_for_notification(
        self, notification: Notification, occurrence_date: date | None
    ) -> int:
        """
        対象ユーザー全員にタスクを作成する。

        Returns:
            int: 作成したタスク数

        Raises:
            FanOutError: いずれかのユーザーでタスク作成に失敗した場合（残りは作成しない）
        """
        action = notification.action_item
        if action is None or not action.is_actionable:
            logger.warning(
                "Notification %s has no valid action item, skipping TODO creation",
                notification.id,
            )
            return 0

        user_ids = self.resolve_target_user_ids(notification)
        logger.debug(
            "Creating TODOs for notification %s with %d target users",
            notification.id,
            len(user_ids),
        )

        provenance = TaskDraft(
            source_notification_id=notification.id,
            occurrence_date=occurrence_date,
        )

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

                task_id = self._tasks.create(
                    handle, action.description, action.category, provenance
                )
            except Exception as e:
                logger.error(
                    "Failed to create TODO for notification %s user %s: %s",
                    notification.id,
                    user_id,
                    e,
                )
                raise FanOutError(notification.id, user_id) from e

            created += 1
            logger.debug(
                "Created TODO task %s for user %s from notification %s",
                task_id,
                handle,
                notification.id,
            )

        return created

    def reset_read_states(self, notification: Notification) -> None:
        """既読状態をリセットし、通知が「新着」として再表示されるようにする（失敗しても継続）"""
        try:
            count = self._states.reset_read_state(notification.id)
            logger.debug(
                "Reset read state for %d users on notification %s",
                count,
                notification.id,
            )
        except Exception as e:
            error = StateResetError(notification.id)
            logger.warning("%s: %s", error, e, exc_info=True)

    def mark_occurrence_processed(
        self, notification_id: str, occurrence_date: date, todos_created: int
    ) -> bool:
        """
        台帳に記録する。

        Returns:
            bool: 記録した場合 True、並行実行により既に記録済みだった場合 False

        Raises:
            LedgerWriteError: 一意制約違反以外の理由で書き込みに失敗した場合
        """
        try:
            self._ledger.mark_processed(notification_id, occurrence_date, todos_created)
        except OccurrenceAlreadyRecorded:
            logger.info(
                "Occurrence already recorded by a concurrent run: "
                "notification=%s, date=%s",
                notification_id,
                occurrence_date,
            )
            return False
        except Exception as e:
            raise LedgerWriteError(notification_id, occurrence_date) from e

        logger.debug(
            "Marked occurrence as processed: notification=%s, date=%s, todosCreated=%d",
            notification_id,
            occurrence_date,
            todos_created,
        )
        return True

    def _process_single(
        self,
        notification: Notification,
        today: date,
        result: ProcessingResult,
    ) -> ProcessingResult:
        """1通知の処理。エラーが発生しても他の通知の処理は続行。"""
        logger.debug(
            "Processing notification %s with subject '%s'",
            notification.id,
            notification.subject,
        )

        try:
            todos_created = self.create_todos_for_notification(notification, today)
        except Exception as e:
            logger.exception("Error processing notification %s", notification.id)
            return result.add_error(
                f"Failed to process notification {notification.id}: {_describe(e)}"
            )

        self.reset_read_states(notification)

        try:
            recorded = self.mark_occurrence_processed(notification.id, today, todos_created)
        except LedgerWriteError as e:
            logger.exception("Error recording occurrence for %s", notification.id)
            # タスクは作成済みなので件数には含める（次回実行で重複する可能性あり）
            return result.add_todos(todos_created).add_error(
                f"Failed to process notification {notification.id}: {_describe(e)}"
            )

        if not recorded:
            return result.add_todos(todos_created)

        logger.info(
            "Created %d TODO tasks for notification %s", todos_created, notification.id
        )
        return result.add_notification(todos_created)


def _describe(error: Exception) -> str:
    cause = error.__cause__
    if cause is None:
        return str(error)
    return f"{error} ({cause})"
