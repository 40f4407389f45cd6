#!/usr/bin/env python3
"""
(Re)load the English-test questions.

Usage:
    python scripts/seed_questions.py            # seed only if the table is empty
    python scripts/seed_questions.py --replace  # wipe attempts + questions, reseed

Connection settings come from the same environment variables as the service
(DATABASE_URL or DB_HOST / DB_PORT / DB_NAME / DB_USER / DB_PASSWORD).
"""
from __future__ import annotations

import argparse
import logging
import os
import sys

# Allow running from repo root or scripts/ directory
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from riskguard.db.database import init_db  # noqa: E402
from riskguard.db.seed import seed_questions  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--replace", action="store_true",
                        help="delete existing attempts and questions first")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    init_db()
    inserted = seed_questions(replace=args.replace)
    print(f"Inserted {inserted} questions")
    return 0


if __name__ == "__main__":
    sys.exit(main())
