"""
Maintenance Routes
Externally scheduled jobs (cron) guarded by a shared secret.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends

from outreach.api.dependencies import get_key_manager
from outreach.api.middleware.auth import require_cron_secret
from outreach.services.key_manager import KeyManager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/reset-daily-usage", dependencies=[Depends(require_cron_secret)])
async def reset_daily_usage(keys: KeyManager = Depends(get_key_manager)):
    """Zero usage counters on keys last reset before today"""
    reset = await keys.reset_daily_usage()
    logger.info("Daily usage reset via cron: %d keys", reset)
    return {
        "success": True,
        "keys_reset": reset,
        "timestamp": datetime.utcnow().isoformat(),
    }
