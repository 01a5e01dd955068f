"""
AWS Lambda Handler - Reminder Scheduler

Purpose: Dispatch due reminders (triggered by EventBridge)

EventBridge Rule: Runs every minute (EVENTBRIDGE_SCHEDULE_RATE)
"""

import asyncio
import json
import logging
import os
import sys

# Add parent directory to path (for local testing)
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../..')))

from estatecrm.config import settings
from estatecrm.logging_setup import setup_logging
from estatecrm.workers.reminder_scheduler import check_due_reminders

setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
logger = logging.getLogger(__name__)


def lambda_handler(event, context):
    """
    Lambda handler for reminder scheduler

    Triggered by: EventBridge rule (every minute)
    """
    logger.info(f"Reminder tick requested by {(event or {}).get('source', 'manual')} ({settings.EVENTBRIDGE_SCHEDULE_RATE})")

    try:
        summary = asyncio.run(check_due_reminders())

        if 'error' in summary:
            return {
                'statusCode': 500,
                'body': json.dumps({'error': summary['error']})
            }

        return {
            'statusCode': 200,
            'body': json.dumps({
                'message': f"Processed {summary['checked']} reminders",
                **summary,
            })
        }

    except Exception as e:
        logger.error(f"Error in reminder scheduler: {e}", exc_info=True)
        return {
            'statusCode': 500,
            'body': json.dumps({'error': str(e)})
        }
