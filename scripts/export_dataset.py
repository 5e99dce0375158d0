from __future__ import annotations

import argparse
import logging
from pathlib import Path

from pricefeed.config import settings
from pricefeed.storage import SqlPriceStore

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Export all stored price records to CSV, ordered by timestamp.")
    parser.add_argument(
        "--output",
        type=Path,
        default=settings.data_dir / "export" / "price_records.csv",
        help="Destination CSV path (directories will be created).",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    store = SqlPriceStore.from_url(settings.database_url)
    try:
        store.ensure_schema()
        rows = store.export_csv(args.output)
    finally:
        store.dispose()
    logger.info("Export complete: %s rows -> %s", rows, args.output)


if __name__ == "__main__":
    main()
