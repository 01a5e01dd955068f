"""
EstateCRM Reminders - Reminder Scheduler

Purpose: Periodic tick that dispatches due reminders, and the broadcast relay.

Testing:
    # Runs automatically on app startup

AWS Deployment Notes:
    - Production: EventBridge rule triggers the Lambda in lambda/reminder_scheduler
      every minute, which calls check_due_reminders(). The API process only
      runs relay_notifications() so its WebSocket clients get the banners.
    - Locally: APScheduler runs the check in-process and broadcasts directly
"""

import logging
from collections import Counter
from datetime import datetime
from typing import Any, Dict, Optional

from estatecrm.clock import Clock
from estatecrm.config import settings
from estatecrm.dependencies import get_db_service, get_dispatcher, get_notification_relay
from estatecrm.services.employees import EmployeeService

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = None


def start_scheduler():
    """
    Start APScheduler in the API process

    apscheduler: runs the reminder tick every REMINDER_CHECK_INTERVAL_SECONDS
    eventbridge: the tick runs in Lambda; only the broadcast relay runs here
    """
    global scheduler

    eventbridge = settings.SCHEDULER_PROVIDER == "eventbridge"
    if eventbridge and not settings.ENABLE_BROADCAST:
        logger.info("Scheduler: Using EventBridge (production), nothing to run in-process")
        return

    try:
        from apscheduler.schedulers.asyncio import AsyncIOScheduler

        scheduler = AsyncIOScheduler()

        if eventbridge:
            job, seconds = relay_notifications, settings.BROADCAST_RELAY_INTERVAL_SECONDS
        else:
            job, seconds = check_due_reminders, settings.REMINDER_CHECK_INTERVAL_SECONDS

        # A slow run is never overlapped by the next one
        scheduler.add_job(
            job,
            'interval',
            seconds=seconds,
            id=job.__name__,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )

        scheduler.start()
        logger.info(f"APScheduler started: {job.__name__} every {seconds} seconds")

    except Exception as e:
        logger.error(f"Failed to start scheduler: {e}", exc_info=True)


def shutdown_scheduler():
    """Shutdown scheduler"""
    global scheduler

    if scheduler:
        scheduler.shutdown()
        scheduler = None
        logger.info("APScheduler stopped")


def is_running() -> bool:
    return scheduler is not None and scheduler.running


async def check_due_reminders(
    dispatcher=None,
    employee_service=None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Dispatch every due reminder once

    This function is called by:
    - APScheduler (local development)
    - EventBridge + Lambda (production)

    Returns:
        Summary with outcome counts and the number of device tokens cleared
    """
    if not settings.ENABLE_REMINDERS:
        logger.info("Reminders disabled, skipping check")
        return {'checked': 0, 'outcomes': {}, 'tokens_cleared': 0}

    dispatcher = dispatcher or get_dispatcher()
    employee_service = employee_service or EmployeeService(get_db_service())
    now = now or Clock().now()

    logger.info(f"Checking due reminders at {now.isoformat()}")

    try:
        reports = await dispatcher.tick(now)
    except Exception as e:
        logger.error(f"Failed to check reminders: {e}", exc_info=True)
        return {'checked': 0, 'outcomes': {}, 'tokens_cleared': 0, 'error': str(e)}

    tokens_cleared = 0
    if settings.CLEAR_INVALID_DEVICE_TOKENS:
        tokens_cleared = await employee_service.clear_invalid_tokens(reports)

    outcomes = Counter(report.outcome.value for report in reports)
    summary = {
        'checked': len(reports),
        'outcomes': dict(outcomes),
        'tokens_cleared': tokens_cleared,
    }

    logger.info(f"Reminder check finished: {summary}")
    return summary


async def relay_notifications(relay=None) -> int:
    """Publish notifications stored by the Lambda tick to this process's clients"""
    relay = relay or get_notification_relay()

    try:
        return await relay.relay()
    except Exception as e:
        logger.error(f"Failed to relay notifications: {e}", exc_info=True)
        return 0
