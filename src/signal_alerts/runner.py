#!/usr/bin/env python3
"""
Command-line entry point for the signal alerts pipeline.

Usage examples:
  # Serve the trigger webhook
  signal-alerts serve --port 8080

  # Replay one trigger payload (e.g., captured from the database webhook)
  signal-alerts process trigger.json

  # Register a subscriber for email alerts
  signal-alerts add-subscriber u1 --email alice@example.com --tier starter --min-score 80

  # Show the latest delivery log rows for a signal
  signal-alerts log --signal-id s1
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from signal_alerts.alerts.pipeline import create_pipeline
from signal_alerts.alerts.store import SubscriberStore
from signal_alerts.api import run_server
from signal_alerts.config import Settings, load_config
from signal_alerts.signals.models import (
    CHANNEL_EMAIL,
    CHANNEL_TELEGRAM,
    ChannelSettings,
    Subscriber,
)

logger = logging.getLogger(__name__)


def _cmd_serve(args, settings: Settings) -> int:
    run_server(settings)
    return 0


def _cmd_process(args, settings: Settings) -> int:
    with open(args.trigger) as f:
        body = json.load(f)

    result = create_pipeline(settings).process(body)
    print(json.dumps(result.body, indent=2))
    logger.info("Pipeline finished in state %s (HTTP %s)", result.state.value, result.status_code)
    return 0 if result.status_code == 200 else 1


def _cmd_add_subscriber(args, settings: Settings) -> int:
    store = SubscriberStore(Path(settings.db_path), timeout=settings.store_timeout)
    alert_settings = {}
    for channel, destination in ((CHANNEL_EMAIL, args.email), (CHANNEL_TELEGRAM, args.telegram_chat_id)):
        if destination:
            alert_settings[channel] = ChannelSettings(
                enabled=True,
                min_signal_score=args.min_score,
                max_alerts_per_day=args.max_per_day,
            )

    store.save_subscriber(Subscriber(
        id=args.subscriber_id,
        email_address=args.email,
        telegram_chat_id=args.telegram_chat_id,
        subscription_tier=args.tier,
        subscription_status=args.status,
        alert_settings=alert_settings,
    ))
    logger.info("Subscriber %s saved (channels: %s)", args.subscriber_id, ", ".join(alert_settings) or "none")
    return 0


def _cmd_log(args, settings: Settings) -> int:
    store = SubscriberStore(Path(settings.db_path), timeout=settings.store_timeout)
    for row in store.get_deliveries(signal_id=args.signal_id, limit=args.limit):
        print(json.dumps(row))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Trading-signal alert dispatch")
    p.add_argument("--config", help="YAML/JSON config file")
    p.add_argument("--db-path", help="SQLite database path")
    sub = p.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the trigger webhook server")
    serve.add_argument("--port", type=int)
    serve.set_defaults(func=_cmd_serve)

    process = sub.add_parser("process", help="Process one trigger JSON file")
    process.add_argument("trigger", help="Path to trigger JSON")
    process.set_defaults(func=_cmd_process)

    add = sub.add_parser("add-subscriber", help="Create or update a subscriber")
    add.add_argument("subscriber_id")
    add.add_argument("--email")
    add.add_argument("--telegram-chat-id")
    add.add_argument("--tier", default="starter")
    add.add_argument("--status", default="active")
    add.add_argument("--min-score", type=int, default=80)
    add.add_argument("--max-per-day", type=int, default=None)
    add.set_defaults(func=_cmd_add_subscriber)

    log = sub.add_parser("log", help="Show recent delivery log rows")
    log.add_argument("--signal-id")
    log.add_argument("--limit", type=int, default=20)
    log.set_defaults(func=_cmd_log)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_config(args.config, db_path=args.db_path, port=getattr(args, "port", None))

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    return args.func(args, settings)


if __name__ == "__main__":
    sys.exit(main())
