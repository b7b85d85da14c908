"""Services layer - ビジネスロジック"""

from recurra.services.notification_publisher import NotificationPublisher
from recurra.services.occurrence_processor import OccurrenceProcessor
from recurra.services.random_initializer import RandomValueInitializer
from recurra.services.recurrence_evaluator import RecurrenceEvaluator

__all__ = [
    "OccurrenceProcessor",
    "RecurrenceEvaluator",
    "RandomValueInitializer",
    "NotificationPublisher",
]
