"""RecurrenceEvaluator - 繰り返しルールの配信日判定

ルール・日付・タイムゾーンから「その日が発生日か」を判定する純粋関数。
時計や乱数には一切アクセスしない（同じ入力には常に同じ結果を返す）。
"""

from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, time, timedelta, tzinfo
from zoneinfo import ZoneInfo

from recurra.domain.errors import EvaluationStateError
from recurra.domain.recurrence import (
    Daily,
    Monthly,
    PendingRandomDateRange,
    PendingRandomMonthly,
    PendingRandomWeekly,
    RandomDateRange,
    RandomMonthly,
    RandomWeekly,
    RecurrenceRule,
    Weekly,
    Yearly,
)

logger = logging.getLogger(__name__)

# 予測で先読みする最大日数（全パターンを1周以上カバーする）
FORECAST_WINDOW_DAYS = 366


class RecurrenceEvaluator:
    """
    繰り返しルールの評価。

    日付はまずシステムのタイムゾーンでの 0:00 として解釈し、
    受信者のタイムゾーンに変換した暦日で判定する。
    """

    def __init__(self, system_zone: tzinfo | None = None) -> None:
        """
        Args:
            system_zone: サーバー側のタイムゾーン（None の場合は UTC）
        """
        self._system_zone = system_zone or ZoneInfo("UTC")

    @property
    def system_zone(self) -> tzinfo:
        return self._system_zone

    def to_local_date(self, on_date: date, time_zone: tzinfo | None) -> date:
        """システムのタイムゾーンの暦日を、受信者のタイムゾーンの暦日に変換"""
        if time_zone is None:
            return on_date
        start_of_day = datetime.combine(on_date, time.min, tzinfo=self._system_zone)
        return start_of_day.astimezone(time_zone).date()

    def should_deliver_on(
        self,
        rule: RecurrenceRule,
        on_date: date,
        time_zone: tzinfo | None = None,
    ) -> bool:
        """
        その日が発生日かどうかを判定する。

        Args:
            rule: 繰り返しルール
            on_date: 判定する日付（システムのタイムゾーンの暦日）
            time_zone: 受信者のタイムゾーン（None の場合は変換しない）

        Returns:
            bool: 発生日なら True

        Raises:
            ValueError: rule または on_date が None の場合
            EvaluationStateError: ランダム値が未確定のルールの場合
        """
        if rule is None:
            raise ValueError("Recurrence rule cannot be None")
        if on_date is None:
            raise ValueError("Date cannot be None")

        return self._matches(rule, self.to_local_date(on_date, time_zone))

    def get_next_delivery_date(
        self,
        rule: RecurrenceRule | None,
        from_date: date | None,
        time_zone: tzinfo | None = None,
    ) -> date | None:
        """
        from_date（当日を含む）以降の最初の発生日を返す（予測用）。

        FORECAST_WINDOW_DAYS 日先まで見つからなければ None。
        ただし 2/29 の YEARLY ルールは次の閏年の 2/29 を返す。
        """
        if rule is None or from_date is None:
            return None

        local_from = self.to_local_date(from_date, time_zone)

        for offset in range(FORECAST_WINDOW_DAYS + 1):
            candidate = local_from + timedelta(days=offset)
            if self._matches(rule, candidate):
                return candidate

        if isinstance(rule, Yearly) and (rule.month, rule.day_of_month) == (2, 29):
            return _next_leap_day(local_from)

        logger.debug("No delivery date within %d days for %s", FORECAST_WINDOW_DAYS, rule)
        return None

    def forecast(
        self,
        rule: RecurrenceRule,
        from_date: date,
        count: int,
        time_zone: tzinfo | None = None,
    ) -> list[date]:
        """from_date 以降の発生日を最大 count 件返す（受信者のタイムゾーンの暦日）"""
        if count < 0:
            raise ValueError("count must not be negative")

        dates: list[date] = []
        # 変換は最初の1回だけ。以降は受信者の暦日のまま進める
        cursor = self.to_local_date(from_date, time_zone)
        while len(dates) < count:
            next_date = self.get_next_delivery_date(rule, cursor)
            if next_date is None:
                break
            dates.append(next_date)
            cursor = next_date + timedelta(days=1)
        return dates

    # ── 種別ごとの判定 ────────────────────────────────────────────────────────

    @staticmethod
    def _matches(rule: RecurrenceRule, local_date: date) -> bool:
        if isinstance(
            rule, (PendingRandomWeekly, PendingRandomMonthly, PendingRandomDateRange)
        ):
            raise EvaluationStateError(
                f"Random values must be initialized before evaluation "
                f"(kind={rule.kind.value})"
            )

        if isinstance(rule, Daily):
            return True

        if isinstance(rule, (Weekly, RandomWeekly)):
            # isoweekday: 1=月曜 〜 7=日曜
            return local_date.isoweekday() == rule.day_of_week

        if isinstance(rule, (Monthly, RandomMonthly)):
            return _day_matches(local_date, local_date.month, rule.day_of_month)

        if isinstance(rule, Yearly):
            return _day_matches(local_date, rule.month, rule.day_of_month)

        if isinstance(rule, RandomDateRange):
            return (
                local_date.month == rule.random_month
                and local_date.day == rule.random_day
            )

        raise TypeError(f"Unsupported recurrence rule: {rule!r}")


def _day_matches(local_date: date, month: int, day_of_month: int) -> bool:
    """月と日が一致し、かつその日がその年のその月に存在するか（繰り越しなし）"""
    if local_date.month != month:
        return False
    days_in_month = calendar.monthrange(local_date.year, local_date.month)[1]
    if day_of_month > days_in_month:
        return False
    return local_date.day == day_of_month


def _next_leap_day(from_date: date) -> date:
    year = from_date.year
    while True:
        if calendar.isleap(year):
            leap_day = date(year, 2, 29)
            if leap_day >= from_date:
                return leap_day
        year += 1
