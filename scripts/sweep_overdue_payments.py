#!/usr/bin/env python3
"""
Persist the overdue status for installments whose due date has passed.

Overdue is already derived on read; this sweep writes it down so reporting
queries and the admin loan list can filter on it directly.

Usage:
    python scripts/sweep_overdue_payments.py [--as-of YYYY-MM-DD]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import date, datetime, timezone

from app.core.logging import configure_logging
from app.db.session import session_scope
from app.services import loan_ledger

logger = logging.getLogger("scripts.sweep_overdue_payments")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help="Cut-off date (defaults to today, UTC)",
    )
    return parser.parse_args()


async def main(as_of: date) -> int:
    async with session_scope() as session:
        count = await loan_ledger.mark_overdue(session, as_of)
    logger.info("Overdue sweep complete as_of=%s marked=%s", as_of.isoformat(), count)
    return count


if __name__ == "__main__":
    configure_logging()
    args = _parse_args()
    asyncio.run(main(args.as_of or datetime.now(timezone.utc).date()))
