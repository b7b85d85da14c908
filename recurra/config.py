"""設定管理 - 環境変数の型安全な読み込み"""

import os
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv


@dataclass(frozen=True)
class ZoneConfig:
    """タイムゾーン設定（Firestore を使わない予測でも利用する）"""
    system_timezone: str = "UTC"
    recipient_timezone: str = "UTC"

    @property
    def system_zone(self) -> ZoneInfo:
        return ZoneInfo(self.system_timezone)

    @property
    def recipient_zone(self) -> ZoneInfo:
        return ZoneInfo(self.recipient_timezone)

    @classmethod
    def from_env(cls) -> "ZoneConfig":
        """SYSTEM_TIMEZONE / RECIPIENT_TIMEZONE を読み込む。PROJECT_ID は不要"""
        load_dotenv()

        system_timezone = os.getenv("SYSTEM_TIMEZONE", "UTC")
        # 未指定の場合は受信者もシステムと同じタイムゾーン
        recipient_timezone = os.getenv("RECIPIENT_TIMEZONE", system_timezone)
        for name, value in (
            ("SYSTEM_TIMEZONE", system_timezone),
            ("RECIPIENT_TIMEZONE", recipient_timezone),
        ):
            try:
                ZoneInfo(value)
            except (ZoneInfoNotFoundError, ValueError) as e:
                raise ValueError(f"{name} is not a valid time zone: {value}") from e

        return cls(system_timezone=system_timezone, recipient_timezone=recipient_timezone)


@dataclass(frozen=True)
class AppConfig:
    """アプリケーション設定"""
    project_id: str
    system_timezone: str = "UTC"
    recipient_timezone: str = "UTC"
    processing_cron: str = "0 1 * * *"  # Cloud Scheduler 側の設定値（参照用）
    random_seed: int | None = None

    @property
    def system_zone(self) -> ZoneInfo:
        return ZoneInfo(self.system_timezone)

    @property
    def recipient_zone(self) -> ZoneInfo:
        return ZoneInfo(self.recipient_timezone)

    @classmethod
    def from_env(cls) -> "AppConfig":
        """環境変数から設定を読み込む"""
        load_dotenv()

        project_id = os.getenv("PROJECT_ID")
        if not project_id:
            raise ValueError("PROJECT_ID is not set in environment")

        zones = ZoneConfig.from_env()

        raw_seed = os.getenv("RECURRENCE_RANDOM_SEED", "")
        try:
            random_seed = int(raw_seed) if raw_seed else None
        except ValueError as e:
            raise ValueError(
                f"RECURRENCE_RANDOM_SEED must be an integer: {raw_seed}"
            ) from e

        return cls(
            project_id=project_id,
            system_timezone=zones.system_timezone,
            recipient_timezone=zones.recipient_timezone,
            processing_cron=os.getenv("RECURRING_ACTION_TODO_CRON", "0 1 * * *"),
            random_seed=random_seed,
        )
