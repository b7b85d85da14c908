"""RandomValueInitializer - ランダム系ルールの値確定

未確定のランダムルールから確定済みルールへの遷移を行う。
元のルールは変更せず、常に新しい値を返す。確定済み・非ランダムのルールはそのまま返す。
"""

from __future__ import annotations

import logging
import random

from recurra.domain.recurrence import (
    PendingRandomDateRange,
    PendingRandomMonthly,
    PendingRandomWeekly,
    RandomDateRange,
    RandomMonthly,
    RandomWeekly,
    RecurrenceRule,
    ResolvedRule,
    date_range_day_at,
    date_range_length,
)

logger = logging.getLogger(__name__)

# どの月にも存在する日だけを選ぶ（29〜31日は選ばない）
RANDOM_MONTHLY_MAX_DAY = 28


class RandomValueInitializer:
    """
    ランダム値の抽選。

    乱数源は注入可能（テストではシード付きの random.Random を渡す）。
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def initialize(self, rule: RecurrenceRule) -> ResolvedRule:
        """
        ランダム値を確定したルールを返す。

        Args:
            rule: 繰り返しルール

        Returns:
            確定済みのルール（非ランダム・確定済みの場合は同じオブジェクト）
        """
        if rule is None:
            raise ValueError("Recurrence rule cannot be None")

        if isinstance(rule, PendingRandomWeekly):
            resolved: ResolvedRule = RandomWeekly(day_of_week=self._rng.randint(1, 7))
        elif isinstance(rule, PendingRandomMonthly):
            resolved = RandomMonthly(
                day_of_month=self._rng.randint(1, RANDOM_MONTHLY_MAX_DAY)
            )
        elif isinstance(rule, PendingRandomDateRange):
            resolved = self.initialize_date_range(rule)
        else:
            return rule

        logger.debug("Initialized random recurrence values: %s", resolved)
        return resolved

    def initialize_date_range(
        self, rule: PendingRandomDateRange | RandomDateRange
    ) -> RandomDateRange:
        """期間内の日付を1つ抽選する（平年ベース、年またぎ対応）。確定済みならそのまま返す"""
        if isinstance(rule, RandomDateRange):
            return rule

        window = (rule.start_month, rule.start_day, rule.end_month, rule.end_day)
        index = self._rng.randrange(date_range_length(*window))
        month, day = date_range_day_at(*window, index)
        return RandomDateRange(
            start_month=rule.start_month,
            start_day=rule.start_day,
            end_month=rule.end_month,
            end_day=rule.end_day,
            random_month=month,
            random_day=day,
        )
