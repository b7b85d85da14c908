"""RecurrenceEvaluator のテスト

曜日・月末・閏年・タイムゾーン変換の境界を中心に検証する。
"""

from datetime import date, timedelta
from zoneinfo import ZoneInfo

import pytest

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
    Weekly,
    Yearly,
)
from recurra.services.recurrence_evaluator import RecurrenceEvaluator


class TestShouldDeliverOn:
    """should_deliver_on() の種別ごとの判定"""

    def test_daily_delivers_every_day(self, evaluator):
        start = date(2024, 1, 1)
        for offset in range(366):
            assert evaluator.should_deliver_on(Daily(), start + timedelta(days=offset))

    @pytest.mark.parametrize("day_of_week", range(1, 8))
    def test_weekly_delivers_on_matching_weekday_only(self, evaluator, day_of_week):
        """2024-01-01 は月曜日。1週間のうち該当曜日の1日だけが発生日"""
        week = [date(2024, 1, 1) + timedelta(days=i) for i in range(7)]

        hits = [d for d in week if evaluator.should_deliver_on(Weekly(day_of_week), d)]

        assert hits == [week[day_of_week - 1]]
        assert hits[0].isoweekday() == day_of_week

    def test_random_weekly_uses_drawn_weekday(self, evaluator):
        rule = RandomWeekly(day_of_week=7)
        assert evaluator.should_deliver_on(rule, date(2024, 1, 7)) is True
        assert evaluator.should_deliver_on(rule, date(2024, 1, 6)) is False

    def test_monthly_15_scenario(self, evaluator):
        """毎月15日: 3/15 は配信、3/14・3/16 は配信しない"""
        rule = Monthly(day_of_month=15)

        assert evaluator.should_deliver_on(rule, date(2024, 3, 15)) is True
        assert evaluator.should_deliver_on(rule, date(2024, 3, 14)) is False
        assert evaluator.should_deliver_on(rule, date(2024, 3, 16)) is False

    def test_monthly_31_skips_short_months_without_carry_over(self, evaluator):
        """31日指定は30日までの月では配信しない（月末への繰り上げなし）"""
        rule = Monthly(day_of_month=31)

        assert evaluator.should_deliver_on(rule, date(2024, 1, 31)) is True
        assert evaluator.should_deliver_on(rule, date(2024, 4, 30)) is False
        assert evaluator.should_deliver_on(rule, date(2024, 5, 1)) is False

    def test_monthly_29_in_february(self, evaluator):
        rule = Monthly(day_of_month=29)

        assert evaluator.should_deliver_on(rule, date(2024, 2, 29)) is True
        assert evaluator.should_deliver_on(rule, date(2023, 2, 28)) is False
        assert evaluator.should_deliver_on(rule, date(2023, 3, 1)) is False

    def test_random_monthly(self, evaluator):
        rule = RandomMonthly(day_of_month=10)
        assert evaluator.should_deliver_on(rule, date(2024, 7, 10)) is True
        assert evaluator.should_deliver_on(rule, date(2024, 7, 11)) is False

    def test_yearly(self, evaluator):
        rule = Yearly(month=12, day_of_month=25)
        assert evaluator.should_deliver_on(rule, date(2024, 12, 25)) is True
        assert evaluator.should_deliver_on(rule, date(2024, 11, 25)) is False

    def test_yearly_leap_day_delivers_only_in_leap_years(self, evaluator):
        rule = Yearly(month=2, day_of_month=29)

        assert evaluator.should_deliver_on(rule, date(2024, 2, 29)) is True
        assert evaluator.should_deliver_on(rule, date(2023, 2, 28)) is False
        assert evaluator.should_deliver_on(rule, date(2023, 3, 1)) is False

    def test_random_date_range_matches_drawn_day(self, evaluator):
        rule = RandomDateRange(
            start_month=12,
            start_day=15,
            end_month=1,
            end_day=15,
            random_month=1,
            random_day=3,
        )
        assert evaluator.should_deliver_on(rule, date(2025, 1, 3)) is True
        assert evaluator.should_deliver_on(rule, date(2024, 12, 20)) is False

    @pytest.mark.parametrize(
        "rule",
        [
            PendingRandomWeekly(),
            PendingRandomMonthly(),
            PendingRandomDateRange(start_month=1, start_day=1, end_month=1, end_day=31),
        ],
    )
    def test_pending_random_rule_raises(self, evaluator, rule):
        with pytest.raises(EvaluationStateError, match="must be initialized"):
            evaluator.should_deliver_on(rule, date(2024, 1, 1))

    def test_none_rule_raises(self, evaluator):
        with pytest.raises(ValueError, match="cannot be None"):
            evaluator.should_deliver_on(None, date(2024, 1, 1))

    def test_none_date_raises(self, evaluator):
        with pytest.raises(ValueError, match="cannot be None"):
            evaluator.should_deliver_on(Daily(), None)

    def test_same_inputs_give_same_result(self, evaluator):
        """時計や乱数に依存しない"""
        rule = Weekly(day_of_week=3)
        results = {evaluator.should_deliver_on(rule, date(2024, 5, 8)) for _ in range(20)}
        assert results == {True}


def _days_of_month(year: int, month: int) -> list[date]:
    first = date(year, month, 1)
    days = []
    d = first
    while d.month == month:
        days.append(d)
        d += timedelta(days=1)
    return days


class TestMonthBoundaries:
    """月の長さ・閏年に関わる境界を日単位で走査する"""

    @pytest.mark.parametrize("year", [2023, 2024])
    def test_monthly_30_never_delivers_in_february(self, evaluator, year):
        rule = Monthly(day_of_month=30)

        hits = [
            d for d in _days_of_month(year, 2) if evaluator.should_deliver_on(rule, d)
        ]

        assert hits == []

    @pytest.mark.parametrize("month", [4, 6, 9, 11])
    def test_monthly_31_never_delivers_in_30_day_months(self, evaluator, month):
        rule = Monthly(day_of_month=31)

        hits = [
            d for d in _days_of_month(2024, month) if evaluator.should_deliver_on(rule, d)
        ]

        assert hits == []

    @pytest.mark.parametrize("month", [1, 3, 5, 7, 8, 10, 12])
    def test_monthly_31_delivers_once_in_31_day_months(self, evaluator, month):
        rule = Monthly(day_of_month=31)

        hits = [
            d for d in _days_of_month(2024, month) if evaluator.should_deliver_on(rule, d)
        ]

        assert hits == [date(2024, month, 31)]

    @pytest.mark.parametrize(
        "on_date, expected",
        [
            (date(2024, 4, 15), True),
            (date(2024, 4, 16), False),
            (date(2024, 2, 15), True),
        ],
    )
    def test_monthly_15(self, evaluator, on_date, expected):
        assert evaluator.should_deliver_on(Monthly(day_of_month=15), on_date) is expected

    def test_yearly_leap_day_delivers_on_2020_02_29(self, evaluator):
        rule = Yearly(month=2, day_of_month=29)
        assert evaluator.should_deliver_on(rule, date(2020, 2, 29)) is True

    def test_yearly_leap_day_never_delivers_in_common_year(self, evaluator):
        rule = Yearly(month=2, day_of_month=29)
        year_2023 = [date(2023, 1, 1) + timedelta(days=i) for i in range(365)]

        hits = [d for d in year_2023 if evaluator.should_deliver_on(rule, d)]

        assert hits == []

    @pytest.mark.parametrize("day_of_week", range(1, 8))
    def test_weekly_matches_exactly_the_weekday_over_months(self, evaluator, day_of_week):
        """2024-01-01 から半年分、該当曜日の日だけが発生日"""
        days = [date(2024, 1, 1) + timedelta(days=i) for i in range(182)]

        hits = [d for d in days if evaluator.should_deliver_on(Weekly(day_of_week), d)]

        assert hits == [d for d in days if d.isoweekday() == day_of_week]
        assert len(hits) == 26


class TestTimeZoneConversion:
    """システムのタイムゾーンから受信者のタイムゾーンへの変換"""

    def test_westward_recipient_sees_previous_day(self):
        """UTC 3/15 0:00 は New York では 3/14 の夜"""
        evaluator = RecurrenceEvaluator(system_zone=ZoneInfo("UTC"))
        rule = Monthly(day_of_month=14)

        assert evaluator.should_deliver_on(
            rule, date(2024, 3, 15), ZoneInfo("America/New_York")
        ) is True
        assert evaluator.should_deliver_on(rule, date(2024, 3, 15)) is False

    def test_eastward_recipient_keeps_same_day(self):
        """UTC 0:00 は東京では同じ日の 9:00"""
        evaluator = RecurrenceEvaluator(system_zone=ZoneInfo("UTC"))
        rule = Monthly(day_of_month=15)

        assert evaluator.should_deliver_on(
            rule, date(2024, 3, 15), ZoneInfo("Asia/Tokyo")
        ) is True

    def test_same_zone_is_identity(self):
        zone = ZoneInfo("Asia/Tokyo")
        evaluator = RecurrenceEvaluator(system_zone=zone)

        assert evaluator.to_local_date(date(2024, 3, 15), zone) == date(2024, 3, 15)

    def test_default_system_zone_is_utc(self):
        assert RecurrenceEvaluator().system_zone == ZoneInfo("UTC")


class TestGetNextDeliveryDate:
    """get_next_delivery_date() / forecast() の予測"""

    def test_includes_from_date(self, evaluator):
        rule = Monthly(day_of_month=15)
        assert evaluator.get_next_delivery_date(rule, date(2024, 3, 15)) == date(2024, 3, 15)

    def test_next_month(self, evaluator):
        rule = Monthly(day_of_month=15)
        assert evaluator.get_next_delivery_date(rule, date(2024, 3, 16)) == date(2024, 4, 15)

    def test_monthly_31_skips_to_next_long_month(self, evaluator):
        rule = Monthly(day_of_month=31)
        assert evaluator.get_next_delivery_date(rule, date(2024, 4, 1)) == date(2024, 5, 31)

    def test_weekly(self, evaluator):
        """2024-03-15（金）の次の月曜は 3/18"""
        rule = Weekly(day_of_week=1)
        assert evaluator.get_next_delivery_date(rule, date(2024, 3, 15)) == date(2024, 3, 18)

    def test_yearly_leap_day_beyond_window(self, evaluator):
        """2/29 は 366 日先より遠くても次の閏年の 2/29 を返す"""
        rule = Yearly(month=2, day_of_month=29)
        assert evaluator.get_next_delivery_date(rule, date(2025, 3, 1)) == date(2028, 2, 29)

    def test_yearly_leap_day_within_window(self, evaluator):
        rule = Yearly(month=2, day_of_month=29)
        assert evaluator.get_next_delivery_date(rule, date(2023, 6, 1)) == date(2024, 2, 29)

    def test_none_inputs_return_none(self, evaluator):
        assert evaluator.get_next_delivery_date(None, date(2024, 1, 1)) is None
        assert evaluator.get_next_delivery_date(Daily(), None) is None

    def test_forecast_returns_consecutive_occurrences(self, evaluator):
        rule = Monthly(day_of_month=31)

        dates = evaluator.forecast(rule, date(2024, 1, 1), 4)

        assert dates == [
            date(2024, 1, 31),
            date(2024, 3, 31),
            date(2024, 5, 31),
            date(2024, 7, 31),
        ]

    def test_forecast_leap_day_rule(self, evaluator):
        rule = Yearly(month=2, day_of_month=29)

        dates = evaluator.forecast(rule, date(2024, 3, 1), 2)

        assert dates == [date(2028, 2, 29), date(2032, 2, 29)]

    def test_forecast_converts_time_zone_once(self):
        """受信者の暦日で起点を決め、以降は1日ずつ進める"""
        evaluator = RecurrenceEvaluator(system_zone=ZoneInfo("UTC"))

        dates = evaluator.forecast(
            Daily(), date(2024, 3, 15), 3, ZoneInfo("America/New_York")
        )

        assert dates == [date(2024, 3, 14), date(2024, 3, 15), date(2024, 3, 16)]

    def test_forecast_zero_count(self, evaluator):
        assert evaluator.forecast(Daily(), date(2024, 1, 1), 0) == []

    def test_forecast_negative_count_raises(self, evaluator):
        with pytest.raises(ValueError):
            evaluator.forecast(Daily(), date(2024, 1, 1), -1)
