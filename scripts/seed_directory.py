"""
seed_directory.py
-----------------
CampusGuide - Campus Directory Assistant - Directory seeder
------------------------------------------------------------
Loads teacher records from a JSON file ({"teachers": [...]}, Chinese or
English field names) into the SQLite directory used by the webhook.
Existing rows with the same canonical name are replaced.

Usage:
    python scripts/seed_directory.py
    python scripts/seed_directory.py --file mock_data/faculty.json --db directory.sqlite
    python scripts/seed_directory.py --dry-run

Project: CampusGuide - Campus Directory Assistant
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys

_SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
_REPO_ROOT  = os.path.dirname(_SCRIPT_DIR)
sys.path.insert(0, _REPO_ROOT)

from dotenv import load_dotenv
load_dotenv(os.path.join(_REPO_ROOT, ".env"), override=False)

from pydantic import ValidationError  # noqa: E402

from config import DIRECTORY_DB_PATH, FACULTY_SEED_PATH  # noqa: E402
from directory_store import DirectoryStore, DirectoryStoreError  # noqa: E402
from schemas import Record  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger("seed_directory")


def _preview(path: str) -> int:
    """Validate the seed file without writing; return the number of valid records."""
    with open(path, encoding="utf-8") as f:
        documents = json.load(f)["teachers"]
    valid = 0
    for doc in documents:
        try:
            record = Record.from_document(doc)
        except ValidationError as e:
            log.warning("  SKIP  invalid entry: %s", e.errors()[0]["msg"])
            continue
        valid += 1
        log.info("  OK    %-24s office=%s ext=%s courses=%d",
                 record.canonical_name, record.office_location, record.extension, len(record.courses))
    return valid


async def seed(args: argparse.Namespace) -> int:
    if args.dry_run:
        count = _preview(args.file)
        log.info("Dry run: %d record(s) would be written to '%s'.", count, args.db)
        return 0

    async with DirectoryStore(args.db) as store:
        if not store.connected:
            log.error("Could not open directory DB at '%s'.", args.db)
            return 1
        try:
            count = await store.seed_from_json(args.file)
        except DirectoryStoreError as e:
            log.error("%s", e)
            return 1
        names = await store.list_all_names()
    log.info("Seeded %d record(s); directory now holds %d teacher(s).", count, len(names))
    return 0


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the SQLite teacher directory from a JSON file.")
    parser.add_argument("--file",    type=str, default=str(FACULTY_SEED_PATH), help="Seed JSON file.")
    parser.add_argument("--db",      type=str, default=str(DIRECTORY_DB_PATH), help="SQLite directory file.")
    parser.add_argument("--dry-run", action="store_true", help="Validate and preview without writing.")
    return parser.parse_args()


if __name__ == "__main__":
    sys.exit(asyncio.run(seed(_parse_args())))
