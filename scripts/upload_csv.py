from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

import httpx

from pricefeed.config import settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Upload a CSV to a running price feed API (POST /data).")
    parser.add_argument("path", type=Path, help="CSV file to upload.")
    parser.add_argument(
        "--api",
        type=str,
        default=settings.resolved_api_base_url,
        help="API base URL (default: API_BASE_URL or the configured host/port).",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    timeout = httpx.Timeout(settings.request_timeout_seconds)
    with httpx.Client(base_url=args.api, timeout=timeout) as client, args.path.open("rb") as fh:
        resp = client.post("/data", files={"file": (args.path.name, fh, "text/csv")})

    payload = resp.json()
    if resp.is_error:
        logger.error("Upload failed with %s: %s", resp.status_code, payload.get("details"))
    else:
        logger.info("Uploaded %s: %s records inserted", args.path, payload.get("insertedRecords"))
    print(json.dumps(payload, indent=2))
    resp.raise_for_status()


if __name__ == "__main__":
    main()
