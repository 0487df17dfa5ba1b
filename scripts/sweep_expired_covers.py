#!/usr/bin/env python3
"""Expire cover requests nobody answered within COVER_REQUEST_TTL_HOURS.

Each expired request moves its leave to COVER_DECLINED and pins an alert
for the applicant. Safe to run concurrently with the API.

Usage:
    python scripts/sweep_expired_covers.py          # run once (cron)

Requires DATABASE_URL and JWT_SECRET in the environment or .env
"""

import asyncio
import logging
import sys
from pathlib import Path

# ── Path setup ────────────────────────────────────────────────────────
SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT))

from leaveflow.database import async_session_factory, commit_session, engine
from leaveflow.leave.sweeper import sweep_expired
import leaveflow.main  # noqa  (registers every model with the mapper)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger("sweep_expired_covers")


async def run() -> int:
    async with async_session_factory() as session:
        expired = await sweep_expired(session)
        await commit_session(session)
    await engine.dispose()
    return expired


def main() -> None:
    expired = asyncio.run(run())
    logger.info("Sweep finished: %d cover request(s) expired", expired)


if __name__ == "__main__":
    main()
