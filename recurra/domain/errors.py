"""ドメイン固有の例外クラス"""

from __future__ import annotations

from datetime import date


class RecurraError(Exception):
    """Recurra の基底例外"""

    pass


class RuleValidationError(RecurraError, ValueError):
    """繰り返しルールの構築時バリデーションエラー"""

    pass


class NotificationValidationError(RecurraError, ValueError):
    """通知作成時の入力バリデーションエラー"""

    pass


class EvaluationStateError(RecurraError, RuntimeError):
    """ランダム値が未確定のルールを評価しようとした（呼び出し側の契約違反）"""

    pass


class OccurrenceProcessingError(RecurraError):
    """繰り返し通知の発生処理エラーの基底"""

    def __init__(self, message: str, notification_id: str) -> None:
        super().__init__(message)
        self.notification_id = notification_id


class FanOutError(OccurrenceProcessingError):
    """あるユーザーへのタスク作成に失敗（その通知の残りの処理と台帳記録を中止）"""

    def __init__(self, notification_id: str, user_id: str) -> None:
        super().__init__(
            f"Failed to create TODO for notification {notification_id} "
            f"and user {user_id}",
            notification_id,
        )
        self.user_id = user_id


class LedgerWriteError(OccurrenceProcessingError):
    """タスク作成後の台帳書き込みに失敗（次回実行で重複作成される可能性あり）"""

    def __init__(self, notification_id: str, occurrence_date: date) -> None:
        super().__init__(
            f"Failed to track occurrence for notification {notification_id} "
            f"on {occurrence_date.isoformat()}",
            notification_id,
        )
        self.occurrence_date = occurrence_date


class StateResetError(OccurrenceProcessingError):
    """既読状態のリセットに失敗（ログのみ、処理は継続）"""

    def __init__(self, notification_id: str) -> None:
        super().__init__(
            f"Failed to reset read states for notification {notification_id}",
            notification_id,
        )


class OccurrenceAlreadyRecorded(RecurraError):
    """(notification_id, occurrence_date) の台帳エントリが既に存在する

    ストレージ層の一意制約違反。並行実行が先に処理を完了したことを意味する。
    """

    def __init__(self, notification_id: str, occurrence_date: date) -> None:
        super().__init__(
            f"Occurrence already recorded: notification={notification_id}, "
            f"date={occurrence_date.isoformat()}"
        )
        self.notification_id = notification_id
        self.occurrence_date = occurrence_date
