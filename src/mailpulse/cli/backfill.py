"""One-shot backfill of every configured mailbox."""

from __future__ import annotations

import argparse

from loguru import logger

from mailpulse.cli.log_config import configure_logging
from mailpulse.infrastructure.container import Container
from mailpulse.infrastructure.settings import get_settings


def main() -> int:
    parser = argparse.ArgumentParser(description="Backfill recent emails from all configured mailboxes")
    parser.add_argument("--days", type=int, default=None, help="Override the sync window (default: SYNC_DAYS)")
    parser.add_argument("--account", action="append", default=None, help="Only backfill this address (repeatable)")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level)

    accounts = settings.accounts()
    if args.account:
        wanted = {a.lower() for a in args.account}
        accounts = [a for a in accounts if a.email.lower() in wanted]
    if not accounts:
        logger.error("No matching mailboxes configured")
        return 1

    container = Container(settings)
    container.ensure_schema()
    coordinator = container.build_coordinator(sync_days=args.days)

    try:
        count = coordinator.backfill(accounts)
    finally:
        coordinator.pipeline.close(wait=True)
        container.close()

    print(f"Indexed {count} emails from {len(accounts)} mailbox(es)")
    for account_id, reason in coordinator.down_accounts.items():
        print(f"  {account_id}: DOWN ({reason})")
    return 0 if not coordinator.down_accounts else 2


if __name__ == "__main__":
    raise SystemExit(main())
