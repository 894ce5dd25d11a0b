# FILE: app/scripts/process_notification_queue.py
"""
Send due notifications once. Meant for cron:

  */1 * * * * python -m app.scripts.process_notification_queue --limit 100
"""
from __future__ import annotations

import argparse
import logging
from typing import List, Optional

from app.db.session import SessionLocal
from app.services.notification_queue import process_queue


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Process the notification queue once.")
    parser.add_argument("--limit", type=int, default=None, help="Max rows in this run.")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    db = SessionLocal()
    try:
        counts = process_queue(db, limit=args.limit)
        print("Queue run:", counts)
    finally:
        db.close()


if __name__ == "__main__":
    main()
