"""ロギング設定モジュール

Cloud Run / Cloud Logging 環境ではJSON形式、ローカルではテキスト形式でログを出力する。
Cloud Scheduler 経由の日次処理（worker）と CLI の手動実行は同じ設定を使う。

使い方:
    from recurra.logging_config import setup_logging
    setup_logging()

    # 発生処理の文脈をJSONログに載せる
    logger.info("...", extra={"extra_fields": {"notification_id": "n1"}})

環境変数:
    LOG_LEVEL: ログレベル (DEBUG, INFO, WARNING, ERROR, CRITICAL) デフォルト: INFO
    K_SERVICE / CLOUD_RUN_JOB: Cloud Run 環境判定（自動設定される）
"""

from __future__ import annotations

import json
import logging
import os
from datetime import date

# Google クライアントライブラリは WARNING 以上のみ出力
_NOISY_LOGGERS = ("google.api_core", "google.auth", "urllib3", "grpc")


class CloudLoggingFormatter(logging.Formatter):
    """Cloud Logging互換のJSONフォーマッタ

    `severity` フィールドでログレベルをマッピングし、
    `extra_fields` に渡された通知ID・発生日などをトップレベルに展開する。
    """

    LEVEL_TO_SEVERITY = {
        "DEBUG": "DEBUG",
        "INFO": "INFO",
        "WARNING": "WARNING",
        "ERROR": "ERROR",
        "CRITICAL": "CRITICAL",
    }

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict = {
            "severity": self.LEVEL_TO_SEVERITY.get(record.levelname, "DEFAULT"),
            "message": record.getMessage(),
            "logger": record.name,
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
        }
        if record.exc_info and record.exc_info[0]:
            log_entry["exception"] = self.formatException(record.exc_info)
        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            log_entry.update(extra_fields)
        return json.dumps(log_entry, ensure_ascii=False, default=_json_default)


def _json_default(value: object) -> str:
    # occurrence_date などの date は ISO 形式で出力
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def is_cloud_environment() -> bool:
    """Cloud Run 環境判定（K_SERVICE: Cloud Run Services, CLOUD_RUN_JOB: Cloud Run Jobs）"""
    return bool(os.getenv("K_SERVICE") or os.getenv("CLOUD_RUN_JOB"))


def setup_logging(level: str | None = None) -> None:
    """ログ設定を初期化する

    Args:
        level: ログレベル（None の場合は LOG_LEVEL 環境変数、未設定なら INFO）
    """
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    handler = logging.StreamHandler()
    if is_cloud_environment():
        handler.setFormatter(CloudLoggingFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
