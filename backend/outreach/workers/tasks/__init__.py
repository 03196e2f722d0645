"""
Celery Tasks
"""

from .maintenance_tasks import reset_daily_usage
from .campaign_tasks import send_campaign

__all__ = [
    "reset_daily_usage",
    "send_campaign",
]
