"""
Maintenance Tasks
Periodic upkeep of the key store
"""

import asyncio
from datetime import datetime
from typing import Dict

from celery.utils.log import get_task_logger

from outreach.workers.celery_app import celery_app
from outreach.services.key_manager import KeyManager
from outreach.utils.database import close_db

logger = get_task_logger(__name__)


def run_async(coro):
    """Run async function in sync context"""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _reset_daily_usage() -> int:
    try:
        return await KeyManager().reset_daily_usage()
    finally:
        # Pooled connections belong to this loop
        await close_db()


@celery_app.task(
    name="outreach.workers.tasks.maintenance_tasks.reset_daily_usage",
)
def reset_daily_usage() -> Dict:
    """
    Zero usage counters on every key whose last reset was before today.
    Runs daily; running it twice on the same day changes nothing.
    """
    now = datetime.utcnow()
    try:
        reset = run_async(_reset_daily_usage())
        logger.info(f"Reset daily usage on {reset} keys")
        return {
            "success": True,
            "keys_reset": reset,
            "timestamp": now.isoformat(),
        }
    except Exception as e:
        logger.exception(f"Error resetting daily usage: {e}")
        return {"error": str(e)}
