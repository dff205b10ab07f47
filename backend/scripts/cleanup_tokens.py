"""Run the expired-credential sweep and history retention once.

For cron-driven deployments that don't keep the API process's scheduler
running. Exits non-zero if the sweep could not run.

Usage:
    cd backend && python -m scripts.cleanup_tokens
"""

import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


async def main() -> int:
    from config import get_settings
    from database import async_session, engine
    from services.container import build_container

    container = build_container(get_settings(), async_session)
    logger.info(f"Starting token cleanup at {datetime.now(timezone.utc).isoformat()}")

    try:
        report = await container.cleanup.run()
        purged = await container.cleanup.purge_history()
    except Exception:
        logger.exception("Token cleanup failed")
        return 1
    finally:
        await engine.dispose()

    logger.info(
        f"Summary: {report.checked} checked, {report.refreshed} refreshed, "
        f"{report.removed} removed, {purged} old samples purged"
    )
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
