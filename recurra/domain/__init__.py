"""Domain layer - 外部依存なしのドメインモデルとインターフェース定義"""

from recurra.domain.errors import (
    EvaluationStateError,
    FanOutError,
    LedgerWriteError,
    NotificationValidationError,
    OccurrenceAlreadyRecorded,
    OccurrenceProcessingError,
    RecurraError,
    RuleValidationError,
    StateResetError,
)
from recurra.domain.models import (
    ActionItem,
    Notification,
    ProcessedOccurrence,
    ProcessingResult,
    TaskDraft,
)
from recurra.domain.ports import (
    NotificationSource,
    NotificationStateStore,
    OccurrenceLedger,
    TaskSink,
    UserDirectory,
)
from recurra.domain.recurrence import (
    Daily,
    Monthly,
    PendingRandomDateRange,
    PendingRandomMonthly,
    PendingRandomWeekly,
    RandomDateRange,
    RandomMonthly,
    RandomWeekly,
    RecurrenceKind,
    RecurrenceRule,
    Weekly,
    Yearly,
    build_rule,
    rule_from_dict,
    rule_to_dict,
)

__all__ = [
    # Models
    "ActionItem",
    "Notification",
    "TaskDraft",
    "ProcessedOccurrence",
    "ProcessingResult",
    # Recurrence
    "RecurrenceKind",
    "RecurrenceRule",
    "Daily",
    "Weekly",
    "Monthly",
    "Yearly",
    "PendingRandomWeekly",
    "PendingRandomMonthly",
    "PendingRandomDateRange",
    "RandomWeekly",
    "RandomMonthly",
    "RandomDateRange",
    "build_rule",
    "rule_from_dict",
    "rule_to_dict",
    # Errors
    "RecurraError",
    "RuleValidationError",
    "NotificationValidationError",
    "EvaluationStateError",
    "OccurrenceProcessingError",
    "FanOutError",
    "LedgerWriteError",
    "StateResetError",
    "OccurrenceAlreadyRecorded",
    # Ports
    "NotificationSource",
    "UserDirectory",
    "TaskSink",
    "NotificationStateStore",
    "OccurrenceLedger",
]
