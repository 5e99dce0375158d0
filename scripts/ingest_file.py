from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from pricefeed.config import settings
from pricefeed.ingestion.pipeline import build_pipeline

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest a local UNIX,SYMBOL,OPEN,HIGH,LOW,CLOSE CSV into the store.")
    parser.add_argument("path", type=Path, help="CSV file to ingest.")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=settings.ingest_batch_size,
        help=f"Rows per bulk insert (default: {settings.ingest_batch_size}).",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    pipeline = build_pipeline(batch_size=args.batch_size)
    try:
        outcome = pipeline.ingest(args.path.open("rb"))
    finally:
        pipeline.store.dispose()

    logger.info("Ingestion summary: %s inserted, %s skipped", outcome.inserted, outcome.skipped_count)
    print(json.dumps(outcome.model_dump(), indent=2))


if __name__ == "__main__":
    main()
