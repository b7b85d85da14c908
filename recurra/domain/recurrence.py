"""繰り返しルール - 種別ごとの値オブジェクト（タグ付きユニオン）

種別ごとに専用の frozen dataclass を持ち、その種別に意味のあるフィールドだけを保持する。
バリデーションは構築時（__post_init__）に行い、評価時には行わない。

ランダム系の種別は「未確定（Pending*）」と「確定済み」の2状態を別クラスで表す。
確定はインプレースの更新ではなく、新しい値を生成する遷移として扱う
（services/random_initializer.py）。

永続化形式（Firestore のマップ / JSON）:
  {"kind": "WEEKLY", "day_of_week": 3, "random_values_initialized": false}
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date, timedelta
from enum import Enum
from typing import Any, ClassVar

from recurra.domain.errors import RuleValidationError


class RecurrenceKind(Enum):
    """繰り返しパターンの種別"""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"
    RANDOM_WEEKLY = "RANDOM_WEEKLY"
    RANDOM_MONTHLY = "RANDOM_MONTHLY"
    RANDOM_DATE_RANGE = "RANDOM_DATE_RANGE"


# YEARLY の 2/29 を許可するため、2月は29日として扱う
_MAX_DAYS_IN_MONTH = (31, 29, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)

# 期間系（RANDOM_DATE_RANGE）は平年の365日カレンダーで計算する
_COMMON_YEAR = 2021


# ── バリデーションヘルパー ────────────────────────────────────────────────────


def _require_int(value: Any, label: str, low: int, high: int, kind_label: str) -> int:
    if value is None:
        raise RuleValidationError(f"{label} is required for {kind_label} recurrence")
    if isinstance(value, bool) or not isinstance(value, int):
        raise RuleValidationError(f"{label} must be an integer, got {value!r}")
    if value < low or value > high:
        raise RuleValidationError(f"{label} must be between {low} and {high}")
    return value


def _require_day_exists(month: int, day: int, allow_leap_day: bool) -> None:
    max_day = _MAX_DAYS_IN_MONTH[month - 1]
    if not allow_leap_day and month == 2:
        max_day = 28
    if day > max_day:
        raise RuleValidationError(f"Day {day} does not exist in month {month}")


def _validate_window(rule: PendingRandomDateRange | RandomDateRange) -> None:
    label = "random date range"
    _require_int(rule.start_month, "Start month", 1, 12, label)
    _require_int(rule.start_day, "Start day", 1, 31, label)
    _require_int(rule.end_month, "End month", 1, 12, label)
    _require_int(rule.end_day, "End day", 1, 31, label)
    _require_day_exists(rule.start_month, rule.start_day, allow_leap_day=False)
    _require_day_exists(rule.end_month, rule.end_day, allow_leap_day=False)


# ── 期間計算（平年ベース、年またぎ対応） ───────────────────────────────────────


def _window_bounds(
    start_month: int, start_day: int, end_month: int, end_day: int
) -> tuple[date, date]:
    start = date(_COMMON_YEAR, start_month, start_day)
    end = date(_COMMON_YEAR, end_month, end_day)
    if end < start:
        # 年またぎ（例: 12/15〜1/15）
        end = date(_COMMON_YEAR + 1, end_month, end_day)
    return start, end


def date_range_length(
    start_month: int, start_day: int, end_month: int, end_day: int
) -> int:
    """期間に含まれる日数（両端を含む）"""
    start, end = _window_bounds(start_month, start_day, end_month, end_day)
    return (end - start).days + 1


def date_range_day_at(
    start_month: int, start_day: int, end_month: int, end_day: int, index: int
) -> tuple[int, int]:
    """期間の先頭から index 日目（0始まり）の (month, day) を返す"""
    length = date_range_length(start_month, start_day, end_month, end_day)
    if index < 0 or index >= length:
        raise IndexError(f"index {index} is outside a window of {length} days")
    start, _ = _window_bounds(start_month, start_day, end_month, end_day)
    picked = start + timedelta(days=index)
    return picked.month, picked.day


def date_range_contains(
    start_month: int,
    start_day: int,
    end_month: int,
    end_day: int,
    month: int,
    day: int,
) -> bool:
    """(month, day) が期間内にあるか"""
    start, end = _window_bounds(start_month, start_day, end_month, end_day)
    candidate = date(_COMMON_YEAR, month, day)
    if candidate < start:
        candidate = date(_COMMON_YEAR + 1, month, day)
    return start <= candidate <= end


# ── 固定パターン ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Daily:
    """毎日"""

    kind: ClassVar[RecurrenceKind] = RecurrenceKind.DAILY
    random_values_initialized: ClassVar[bool] = False


@dataclass(frozen=True)
class Weekly:
    """毎週（day_of_week: 1=月曜 〜 7=日曜）"""

    day_of_week: int

    kind: ClassVar[RecurrenceKind] = RecurrenceKind.WEEKLY
    random_values_initialized: ClassVar[bool] = False

    def __post_init__(self) -> None:
        _require_int(self.day_of_week, "Day of week", 1, 7, "weekly")


@dataclass(frozen=True)
class Monthly:
    """毎月（その日が存在しない月は配信しない）"""

    day_of_month: int

    kind: ClassVar[RecurrenceKind] = RecurrenceKind.MONTHLY
    random_values_initialized: ClassVar[bool] = False

    def __post_init__(self) -> None:
        _require_int(self.day_of_month, "Day of month", 1, 31, "monthly")


@dataclass(frozen=True)
class Yearly:
    """毎年（2/29 は閏年のみ配信）"""

    month: int
    day_of_month: int

    kind: ClassVar[RecurrenceKind] = RecurrenceKind.YEARLY
    random_values_initialized: ClassVar[bool] = False

    def __post_init__(self) -> None:
        _require_int(self.month, "Month", 1, 12, "yearly")
        _require_int(self.day_of_month, "Day of month", 1, 31, "yearly")
        _require_day_exists(self.month, self.day_of_month, allow_leap_day=True)


# ── ランダム（未確定） ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PendingRandomWeekly:
    """曜日ランダム（未確定）"""

    kind: ClassVar[RecurrenceKind] = RecurrenceKind.RANDOM_WEEKLY
    random_values_initialized: ClassVar[bool] = False


@dataclass(frozen=True)
class PendingRandomMonthly:
    """日付ランダム（未確定）"""

    kind: ClassVar[RecurrenceKind] = RecurrenceKind.RANDOM_MONTHLY
    random_values_initialized: ClassVar[bool] = False


@dataclass(frozen=True)
class PendingRandomDateRange:
    """期間内ランダム（未確定）。期間は年またぎも可"""

    start_month: int
    start_day: int
    end_month: int
    end_day: int

    kind: ClassVar[RecurrenceKind] = RecurrenceKind.RANDOM_DATE_RANGE
    random_values_initialized: ClassVar[bool] = False

    def __post_init__(self) -> None:
        _validate_window(self)


# ── ランダム（確定済み） ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class RandomWeekly:
    """曜日ランダム（確定済み）"""

    day_of_week: int

    kind: ClassVar[RecurrenceKind] = RecurrenceKind.RANDOM_WEEKLY
    random_values_initialized: ClassVar[bool] = True

    def __post_init__(self) -> None:
        _require_int(self.day_of_week, "Day of week", 1, 7, "random weekly")


@dataclass(frozen=True)
class RandomMonthly:
    """日付ランダム（確定済み）"""

    day_of_month: int

    kind: ClassVar[RecurrenceKind] = RecurrenceKind.RANDOM_MONTHLY
    random_values_initialized: ClassVar[bool] = True

    def __post_init__(self) -> None:
        _require_int(self.day_of_month, "Day of month", 1, 31, "random monthly")


@dataclass(frozen=True)
class RandomDateRange:
    """期間内ランダム（確定済み）。random_month/random_day は期間内であること"""

    start_month: int
    start_day: int
    end_month: int
    end_day: int
    random_month: int
    random_day: int

    kind: ClassVar[RecurrenceKind] = RecurrenceKind.RANDOM_DATE_RANGE
    random_values_initialized: ClassVar[bool] = True

    def __post_init__(self) -> None:
        _validate_window(self)
        label = "random date range"
        _require_int(self.random_month, "Random month", 1, 12, label)
        _require_int(self.random_day, "Random day", 1, 31, label)
        _require_day_exists(self.random_month, self.random_day, allow_leap_day=False)
        if not date_range_contains(
            self.start_month,
            self.start_day,
            self.end_month,
            self.end_day,
            self.random_month,
            self.random_day,
        ):
            raise RuleValidationError(
                f"Random date {self.random_month}/{self.random_day} is outside "
                f"{self.start_month}/{self.start_day}-{self.end_month}/{self.end_day}"
            )


PendingRule = PendingRandomWeekly | PendingRandomMonthly | PendingRandomDateRange
ResolvedRule = (
    Daily | Weekly | Monthly | Yearly | RandomWeekly | RandomMonthly | RandomDateRange
)
RecurrenceRule = ResolvedRule | PendingRule


# ── シリアライズ ─────────────────────────────────────────────────────────────


def rule_to_dict(rule: RecurrenceRule) -> dict[str, Any]:
    """ルールを永続化用の dict に変換"""
    data: dict[str, Any] = {"kind": rule.kind.value}
    for f in fields(rule):
        data[f.name] = getattr(rule, f.name)
    data["random_values_initialized"] = rule.random_values_initialized
    return data


def rule_from_dict(data: dict[str, Any] | None) -> RecurrenceRule | None:
    """
    永続化された dict からルールを復元する。

    kind と random_values_initialized から状態（未確定／確定済み）を決め、
    構築時バリデーションを通す。

    Returns:
        RecurrenceRule、data が空の場合は None

    Raises:
        RuleValidationError: kind が不明、または値が不正な場合
    """
    if not data:
        return None
    return _rule_from_data(data)


def _rule_from_data(data: dict[str, Any]) -> RecurrenceRule:
    raw_kind = data.get("kind")
    try:
        kind = RecurrenceKind(raw_kind)
    except ValueError as e:
        raise RuleValidationError(f"Unknown recurrence kind: {raw_kind!r}") from e

    initialized = bool(data.get("random_values_initialized", False))

    if kind is RecurrenceKind.DAILY:
        return Daily()
    if kind is RecurrenceKind.WEEKLY:
        return Weekly(day_of_week=data.get("day_of_week"))
    if kind is RecurrenceKind.MONTHLY:
        return Monthly(day_of_month=data.get("day_of_month"))
    if kind is RecurrenceKind.YEARLY:
        return Yearly(month=data.get("month"), day_of_month=data.get("day_of_month"))
    if kind is RecurrenceKind.RANDOM_WEEKLY:
        if initialized:
            return RandomWeekly(day_of_week=data.get("day_of_week"))
        return PendingRandomWeekly()
    if kind is RecurrenceKind.RANDOM_MONTHLY:
        if initialized:
            return RandomMonthly(day_of_month=data.get("day_of_month"))
        return PendingRandomMonthly()

    window = {
        "start_month": data.get("start_month"),
        "start_day": data.get("start_day"),
        "end_month": data.get("end_month"),
        "end_day": data.get("end_day"),
    }
    if initialized:
        return RandomDateRange(
            **window,
            random_month=data.get("random_month"),
            random_day=data.get("random_day"),
        )
    return PendingRandomDateRange(**window)


def build_rule(kind: RecurrenceKind | str, **values: Any) -> RecurrenceRule:
    """
    種別とフラットなフィールドからルールを生成する（作成フォーム・CLI 用）。

    ランダム系は常に未確定状態で生成される。値の確定は RandomValueInitializer が行う。
    """
    kind_value = kind.value if isinstance(kind, RecurrenceKind) else kind
    data = {k: v for k, v in values.items() if v is not None}
    data["kind"] = kind_value
    data["random_values_initialized"] = False
    return _rule_from_data(data)
