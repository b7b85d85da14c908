#!/usr/bin/env python3
"""CLI Entrypoint - コマンドラインから実行

使い方:
    # 今日の発生分を処理（管理者による手動実行）
    python -m recurra.entrypoints.cli process
    python -m recurra.entrypoints.cli process --date 2024-03-15

    # 通知を作成（ランダム系ルールはここで値が確定する）
    python -m recurra.entrypoints.cli publish --subject "週報" --body "金曜までに提出" \
        --global --rule-json '{"kind": "WEEKLY", "day_of_week": 5}' --action "週報を提出する"

    # ルールの今後の発生日を確認（Firestore には接続しない）
    python -m recurra.entrypoints.cli forecast --rule-json '{"kind": "MONTHLY", "day_of_month": 15}'

環境変数:
    PROJECT_ID: GCP プロジェクトID（process / publish で必須）
    RECURRENCE_RANDOM_SEED: publish 時のランダム値を固定する（テスト・検証用）
    SYSTEM_TIMEZONE / RECIPIENT_TIMEZONE: タイムゾーン デフォルト: UTC
    LOG_LEVEL: ログレベル (DEBUG, INFO, WARNING, ERROR) デフォルト: INFO
    K_SERVICE / CLOUD_RUN_JOB: Cloud Run 環境では自動設定されJSON形式ログに切替
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date, datetime

from recurra.config import ZoneConfig
from recurra.domain.models import ActionItem, Notification
from recurra.domain.recurrence import RecurrenceRule, build_rule
from recurra.entrypoints.factory import create_processor, create_publisher
from recurra.logging_config import setup_logging
from recurra.services.random_initializer import RandomValueInitializer
from recurra.services.recurrence_evaluator import RecurrenceEvaluator

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="recurra", description="繰り返し通知の TODO 作成"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    process = sub.add_parser("process", help="今日が発生日の通知を処理する")
    process.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="処理対象日 (YYYY-MM-DD)。省略時は今日",
    )

    publish = sub.add_parser("publish", help="通知を作成する")
    publish.add_argument("--subject", required=True, help="件名")
    publish.add_argument("--body", required=True, help="本文")
    audience = publish.add_mutually_exclusive_group(required=True)
    audience.add_argument(
        "--global", dest="is_global", action="store_true", help="全ユーザー宛て"
    )
    audience.add_argument(
        "--target",
        dest="targets",
        action="append",
        default=[],
        help="対象ユーザーID（複数指定可）",
    )
    publish.add_argument("--rule-json", default=None, help="繰り返しルールの JSON")
    publish.add_argument("--action", default=None, help="TODO の内容")
    publish.add_argument("--category", default="", help="TODO のカテゴリ")
    publish.add_argument(
        "--expires-at",
        type=datetime.fromisoformat,
        default=None,
        help="有効期限 (ISO 8601)。タイムゾーン省略時は UTC",
    )

    forecast = sub.add_parser("forecast", help="ルールの今後の発生日を表示する")
    forecast.add_argument("--rule-json", required=True, help="ルールの JSON")
    forecast.add_argument(
        "--from",
        dest="from_date",
        type=date.fromisoformat,
        default=None,
        help="起点日 (YYYY-MM-DD)。省略時は今日",
    )
    forecast.add_argument("--count", type=int, default=5, help="表示件数 デフォルト: 5")
    return parser


def run_process(args: argparse.Namespace) -> int:
    logger.info("Creating occurrence processor...")
    processor = create_processor()

    result = processor.process_recurring_notifications(args.date)

    logger.info(
        "Processing Complete - notifications=%d todos=%d errors=%d",
        result.notifications_processed,
        result.todos_created,
        result.errors,
    )
    for i, message in enumerate(result.error_messages, 1):
        logger.error("[%d] %s", i, message)

    # エラーがあった通知があれば終了コード1
    if result.errors:
        logger.warning("%d notification(s) had errors", result.errors)
        return 1
    return 0


def _parse_rule(rule_json: str) -> RecurrenceRule:
    values = json.loads(rule_json)
    kind = values.pop("kind", "")
    return build_rule(kind, **values)


def run_publish(args: argparse.Namespace) -> int:
    """通知を作成し、確定したルールと ID を表示する"""
    draft = Notification(
        id="",
        subject=args.subject,
        message_body=args.body,
        is_global=args.is_global,
        target_user_ids=frozenset(args.targets),
        expires_at=args.expires_at,
        recurrence_rule=_parse_rule(args.rule_json) if args.rule_json else None,
        action_item=(
            ActionItem(description=args.action, category=args.category)
            if args.action
            else None
        ),
    )

    logger.info("Creating notification publisher...")
    notification = create_publisher().publish(draft)

    print(f"id: {notification.id}")
    if notification.recurrence_rule is not None:
        print(f"rule: {notification.recurrence_rule}")
    return 0


def run_forecast(args: argparse.Namespace) -> int:
    """
    ルールの発生日を表示する。

    ランダム系ルールは作成時と同じく値を確定させてから予測する。
    """
    rule = RandomValueInitializer().initialize(_parse_rule(args.rule_json))

    zones = ZoneConfig.from_env()
    evaluator = RecurrenceEvaluator(system_zone=zones.system_zone)

    from_date = args.from_date or date.today()
    dates = evaluator.forecast(rule, from_date, args.count, zones.recipient_zone)

    print(f"rule: {rule}")
    for d in dates:
        print(d.isoformat())
    if not dates:
        print("(no upcoming occurrences)")
    return 0


def main(argv: list[str] | None = None) -> None:
    """メインエントリーポイント"""
    setup_logging()
    args = build_parser().parse_args(argv)

    logger.info("Recurra - Starting %s", args.command)

    try:
        if args.command == "process":
            code = run_process(args)
        elif args.command == "publish":
            code = run_publish(args)
        else:
            code = run_forecast(args)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    except Exception:
        logger.exception("Fatal error")
        sys.exit(1)

    sys.exit(code)


if __name__ == "__main__":
    main()
