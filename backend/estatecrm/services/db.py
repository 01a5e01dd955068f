"""
EstateCRM Reminders - DynamoDB Database Service

Purpose: Unified database interface for DynamoDB (AWS or Local).
Handles reminders, employee delivery profiles and in-app notifications.

Testing:
    # DynamoDB Local
    db = DatabaseService()
    await db.save_reminder(reminder)
    reminder = await db.get_reminder("reminder_123")

AWS Deployment Notes:
    - Tables created by scripts/create_tables_local.py (local) or IaC (AWS)
    - Uses on-demand billing (PAY_PER_REQUEST)
    - IAM role needs dynamodb:PutItem, GetItem, Scan, UpdateItem, DeleteItem
    - Writes are last-write-wins; the scheduler and owner actions may race on
      the same reminder
"""

import logging
from typing import List, Optional, Dict, Any
from datetime import datetime
import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from estatecrm.config import settings
from estatecrm.clock import format_timestamp
from estatecrm.models.reminder import Reminder, ReminderStatus
from estatecrm.models.employee import Employee
from estatecrm.models.notification import InAppNotification
from estatecrm.services import lifecycle

logger = logging.getLogger(__name__)

# Table type -> partition key; every table uses a single string HASH key
TABLE_KEYS = {
    "reminders": "reminder_id",
    "employees": "employee_id",
    "notifications": "notification_id",
}

# DynamoDB rejects IN conditions with more operands than this
DYNAMODB_IN_OPERAND_LIMIT = 100


class DatabaseService:
    """
    Database service for DynamoDB operations
    """

    def __init__(self):
        # Initialize DynamoDB client
        if settings.USE_DYNAMODB_LOCAL:
            self.dynamodb = boto3.resource(
                'dynamodb',
                endpoint_url=settings.DYNAMODB_LOCAL_ENDPOINT,
                region_name=settings.AWS_REGION,
                aws_access_key_id='local',
                aws_secret_access_key='local'
            )
            logger.info(f"Database: Using DynamoDB Local at {settings.DYNAMODB_LOCAL_ENDPOINT}")
        else:
            self.dynamodb = boto3.resource(
                'dynamodb',
                region_name=settings.AWS_REGION,
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            )
            logger.info("Database: Using DynamoDB AWS")

        # Get table references
        self.reminders_table = self.dynamodb.Table(settings.get_table_name("reminders"))
        self.employees_table = self.dynamodb.Table(settings.get_table_name("employees"))
        self.notifications_table = self.dynamodb.Table(settings.get_table_name("notifications"))

    # =========================================================================
    # TABLE VERIFICATION
    # =========================================================================

    async def verify_tables(self):
        """Verify that all required tables exist"""
        tables = [
            self.reminders_table,
            self.employees_table,
            self.notifications_table,
        ]

        for table in tables:
            try:
                table.load()
                logger.info(f"Table verified: {table.name}")
            except ClientError as e:
                if e.response['Error']['Code'] == 'ResourceNotFoundException':
                    logger.error(f"Table not found: {table.name}")
                raise

    def _scan_all(self, table, **kwargs) -> List[Dict[str, Any]]:
        """Scan a table following LastEvaluatedKey pagination"""
        items = []
        while True:
            response = table.scan(**kwargs)
            items.extend(response.get('Items', []))
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                return items
            kwargs['ExclusiveStartKey'] = last_key

    # =========================================================================
    # REMINDERS
    # =========================================================================

    async def save_reminder(self, reminder: Reminder) -> bool:
        """Save (create or replace) reminder"""
        try:
            item = reminder.to_dynamodb_item()
            self.reminders_table.put_item(Item=item)
            logger.info(f"Saved reminder: {reminder.reminder_id}")
            return True

        except ClientError as e:
            logger.error(f"Failed to save reminder: {e}")
            raise

    async def get_reminder(self, reminder_id: str) -> Optional[Reminder]:
        """Get reminder by ID"""
        try:
            response = self.reminders_table.get_item(
                Key={'reminder_id': reminder_id}
            )

            if 'Item' in response:
                return Reminder.from_dynamodb_item(response['Item'])

            return None

        except ClientError as e:
            logger.error(f"Failed to get reminder: {e}")
            raise

    async def delete_reminder(self, reminder_id: str) -> bool:
        """Delete reminder"""
        try:
            self.reminders_table.delete_item(
                Key={'reminder_id': reminder_id}
            )
            logger.info(f"Deleted reminder: {reminder_id}")
            return True

        except ClientError as e:
            logger.error(f"Failed to delete reminder: {e}")
            raise

    async def list_reminders(
        self,
        owner_id: Optional[str] = None,
        status: Optional[ReminderStatus] = None,
        assignment_type: Optional[str] = None,
    ) -> List[Reminder]:
        """List reminders with filters, sorted by due time"""
        try:
            filter_expressions = []

            if owner_id:
                filter_expressions.append(Attr('owner_id').eq(owner_id))

            if status:
                filter_expressions.append(Attr('status').eq(ReminderStatus(status).value))

            if assignment_type:
                filter_expressions.append(Attr('assignment_type').eq(assignment_type))

            if filter_expressions:
                filter_expr = filter_expressions[0]
                for expr in filter_expressions[1:]:
                    filter_expr = filter_expr & expr

                items = self._scan_all(self.reminders_table, FilterExpression=filter_expr)
            else:
                items = self._scan_all(self.reminders_table)

            reminders = [Reminder.from_dynamodb_item(item) for item in items]

            reminders.sort(key=lambda x: x.due_at)

            return reminders

        except ClientError as e:
            logger.error(f"Failed to list reminders: {e}")
            raise

    async def find_due_reminders(
        self,
        now: datetime,
        owner_ids: Optional[List[str]] = None,
    ) -> List[Reminder]:
        """
        Get reminders that satisfy the due-selection predicate (for scheduler)

        The scan filter narrows the candidates; lifecycle.is_due makes the
        final decision so the store and the engine cannot disagree.
        """
        try:
            now_iso = format_timestamp(now)

            open_reminder = (
                Attr('active').eq(True)
                & Attr('status').ne(ReminderStatus.COMPLETED.value)
                & Attr('status').ne(ReminderStatus.DISMISSED.value)
            )
            due_clause = (
                (Attr('status').eq(ReminderStatus.PENDING.value)
                 & Attr('is_repeating').eq(False)
                 & Attr('due_at').lte(now_iso))
                | (Attr('status').eq(ReminderStatus.SNOOZED.value)
                   & Attr('snoozed_until').lte(now_iso))
                | (Attr('is_repeating').eq(True)
                   & Attr('next_trigger').lte(now_iso))
            )
            filter_expr = open_reminder & due_clause

            owners = None
            if owner_ids is not None:
                owners = set(owner_ids)
                if not owners:
                    return []
                # Scans read the whole table either way; past the IN operand
                # limit the owner check moves client-side
                if len(owners) <= DYNAMODB_IN_OPERAND_LIMIT:
                    filter_expr = filter_expr & Attr('owner_id').is_in(list(owners))

            items = self._scan_all(self.reminders_table, FilterExpression=filter_expr)

            reminders = [Reminder.from_dynamodb_item(item) for item in items]
            reminders = [
                r for r in reminders
                if lifecycle.is_due(r, now) and (owners is None or r.owner_id in owners)
            ]
            reminders.sort(key=lambda x: x.due_at)

            return reminders

        except ClientError as e:
            logger.error(f"Failed to get due reminders: {e}")
            raise

    # =========================================================================
    # EMPLOYEES
    # =========================================================================

    async def get_employee(self, employee_id: str) -> Optional[Employee]:
        """Get employee delivery profile by ID"""
        try:
            response = self.employees_table.get_item(
                Key={'employee_id': employee_id}
            )

            if 'Item' in response:
                return Employee.from_dynamodb_item(response['Item'])

            return None

        except ClientError as e:
            logger.error(f"Failed to get employee: {e}")
            raise

    async def save_employee(self, employee: Employee) -> bool:
        """Save employee delivery profile"""
        try:
            self.employees_table.put_item(Item=employee.to_dynamodb_item())
            logger.info(f"Saved employee profile: {employee.employee_id}")
            return True

        except ClientError as e:
            logger.error(f"Failed to save employee: {e}")
            raise

    async def list_employees(self, popup_enabled: Optional[bool] = None) -> List[Employee]:
        """List employee profiles, optionally filtered by admin popup flag"""
        try:
            if popup_enabled is None:
                items = self._scan_all(self.employees_table)
            else:
                items = self._scan_all(
                    self.employees_table,
                    FilterExpression=Attr('admin_reminder_popup_enabled').eq(popup_enabled)
                )

            return [Employee.from_dynamodb_item(item) for item in items]

        except ClientError as e:
            logger.error(f"Failed to list employees: {e}")
            raise

    async def clear_device_token(self, employee_id: str, device_token: str) -> bool:
        """
        Remove a rejected device token

        Conditional on the stored token still being the rejected one, so a
        token registered in the meantime is kept.
        """
        try:
            self.employees_table.update_item(
                Key={'employee_id': employee_id},
                UpdateExpression='REMOVE device_token',
                ConditionExpression=Attr('device_token').eq(device_token),
            )
            logger.info(f"Cleared device token for employee: {employee_id}")
            return True

        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                logger.info(f"Device token for {employee_id} already replaced")
                return False
            logger.error(f"Failed to clear device token: {e}")
            raise

    # =========================================================================
    # IN-APP NOTIFICATIONS
    # =========================================================================

    async def save_notification(self, notification: InAppNotification) -> bool:
        """Save in-app notification"""
        try:
            self.notifications_table.put_item(Item=notification.to_dynamodb_item())
            logger.info(f"Saved notification: {notification.notification_id}")
            return True

        except ClientError as e:
            logger.error(f"Failed to save notification: {e}")
            raise

    async def get_notification(self, notification_id: str) -> Optional[InAppNotification]:
        """Get in-app notification by ID"""
        try:
            response = self.notifications_table.get_item(
                Key={'notification_id': notification_id}
            )

            if 'Item' in response:
                return InAppNotification.from_dynamodb_item(response['Item'])

            return None

        except ClientError as e:
            logger.error(f"Failed to get notification: {e}")
            raise

    async def list_notifications(self, owner_id: str, unread_only: bool = False) -> List[InAppNotification]:
        """List an employee's notifications, newest first"""
        try:
            filter_expr = Attr('owner_id').eq(owner_id)
            if unread_only:
                filter_expr = filter_expr & Attr('is_read').eq(False)

            items = self._scan_all(self.notifications_table, FilterExpression=filter_expr)

            notifications = [InAppNotification.from_dynamodb_item(item) for item in items]
            notifications.sort(key=lambda x: x.created_at, reverse=True)

            return notifications

        except ClientError as e:
            logger.error(f"Failed to list notifications: {e}")
            raise

    async def list_notifications_since(self, since: datetime) -> List[InAppNotification]:
        """All notifications created strictly after `since`, oldest first"""
        try:
            items = self._scan_all(
                self.notifications_table,
                FilterExpression=Attr('created_at').gt(format_timestamp(since)),
            )

            notifications = [InAppNotification.from_dynamodb_item(item) for item in items]
            notifications.sort(key=lambda x: x.created_at)

            return notifications

        except ClientError as e:
            logger.error(f"Failed to list recent notifications: {e}")
            raise
