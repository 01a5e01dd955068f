"""
Test DynamoDB database service against mocked tables
"""

import pytest
from datetime import timedelta
from unittest.mock import MagicMock, patch

from boto3.dynamodb.conditions import ConditionExpressionBuilder
from botocore.exceptions import ClientError

from estatecrm.models.notification import InAppNotification
from estatecrm.models.reminder import Reminder, SnoozedState
from estatecrm.services import lifecycle
from estatecrm.services.db import DatabaseService


@pytest.fixture
def db():
    with patch("estatecrm.services.db.boto3") as mock_boto3:
        mock_boto3.resource.return_value.Table.side_effect = lambda name: MagicMock(name=name)
        service = DatabaseService()
    return service


def reminder_item(now, reminder_id, **kwargs):
    reminder = Reminder(
        reminder_id=reminder_id,
        owner_id="emp_1",
        title="Call back buyer",
        due_at=now - timedelta(minutes=1),
        created_at=now,
        updated_at=now,
        **kwargs,
    )
    return reminder.to_dynamodb_item()


@pytest.mark.asyncio
async def test_list_reminders_follows_pagination(db, now):
    db.reminders_table.scan.side_effect = [
        {"Items": [reminder_item(now, "reminder_1")], "LastEvaluatedKey": {"reminder_id": "reminder_1"}},
        {"Items": [reminder_item(now, "reminder_2")]},
    ]

    reminders = await db.list_reminders(owner_id="emp_1")

    assert [r.reminder_id for r in reminders] == ["reminder_1", "reminder_2"]
    second_call = db.reminders_table.scan.call_args_list[1].kwargs
    assert second_call["ExclusiveStartKey"] == {"reminder_id": "reminder_1"}
    assert "FilterExpression" in second_call


@pytest.mark.asyncio
async def test_find_due_reminders_rechecks_predicate(db, now):
    """Items the scan filter lets through are dropped unless they are really due"""
    db.reminders_table.scan.return_value = {"Items": [
        reminder_item(now, "reminder_due"),
        reminder_item(now, "reminder_snoozed", state=SnoozedState(until=now + timedelta(minutes=5))),
    ]}

    reminders = await db.find_due_reminders(now)

    assert [r.reminder_id for r in reminders] == ["reminder_due"]


@pytest.mark.asyncio
async def test_find_due_reminders_empty_owner_list(db, now):
    assert await db.find_due_reminders(now, owner_ids=[]) == []
    db.reminders_table.scan.assert_not_called()


@pytest.mark.asyncio
async def test_reminder_item_roundtrip_keeps_state(db, now):
    reminder = Reminder(
        reminder_id="reminder_1",
        owner_id="emp_1",
        title="Weekly review",
        due_at=now,
        repeat=lifecycle.new_repeat_policy(None, now),
        created_at=now,
        updated_at=now,
    )
    lifecycle.complete(reminder, "reviewed all open leads with the team", now)
    lifecycle.apply_edit(reminder, {"body": "Bring pipeline report"}, "emp_1", now)

    await db.save_reminder(reminder)
    item = db.reminders_table.put_item.call_args.kwargs["Item"]
    db.reminders_table.get_item.return_value = {"Item": item}

    loaded = await db.get_reminder("reminder_1")

    assert loaded.model_dump() == reminder.model_dump()


@pytest.mark.asyncio
async def test_get_reminder_missing(db):
    db.reminders_table.get_item.return_value = {}

    assert await db.get_reminder("reminder_missing") is None


@pytest.mark.asyncio
async def test_save_reminder_reraises_client_error(db, now):
    db.reminders_table.put_item.side_effect = ClientError(
        {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}}, "PutItem"
    )
    reminder = Reminder.from_dynamodb_item(reminder_item(now, "reminder_1"))

    with pytest.raises(ClientError):
        await db.save_reminder(reminder)


@pytest.mark.asyncio
async def test_clear_device_token_conditional(db):
    assert await db.clear_device_token("emp_1", "token-1") is True
    kwargs = db.employees_table.update_item.call_args.kwargs
    assert kwargs["Key"] == {"employee_id": "emp_1"}
    assert kwargs["UpdateExpression"] == "REMOVE device_token"

    db.employees_table.update_item.side_effect = ClientError(
        {"Error": {"Code": "ConditionalCheckFailedException", "Message": "changed"}}, "UpdateItem"
    )
    assert await db.clear_device_token("emp_1", "token-1") is False


@pytest.mark.asyncio
async def test_list_notifications_since_filters_and_orders(db, now):
    later = InAppNotification(
        notification_id="notif_2", owner_id="emp_1", reminder_id="reminder_1",
        title="Reminder Alert", message="Second", created_at=now + timedelta(seconds=3),
    )
    earlier = later.model_copy(update={"notification_id": "notif_1", "created_at": now + timedelta(seconds=1)})
    db.notifications_table.scan.return_value = {"Items": [later.to_dynamodb_item(), earlier.to_dynamodb_item()]}

    notifications = await db.list_notifications_since(now)

    assert [n.notification_id for n in notifications] == ["notif_1", "notif_2"]
    assert "FilterExpression" in db.notifications_table.scan.call_args.kwargs


@pytest.mark.asyncio
async def test_find_due_reminders_many_owners_filters_client_side(db, now):
    outsider = reminder_item(now, "reminder_outsider")
    outsider["owner_id"] = "emp_outsider"
    db.reminders_table.scan.return_value = {"Items": [reminder_item(now, "reminder_1"), outsider]}
    owner_ids = ["emp_1"] + [f"emp_{n}" for n in range(2, 152)]

    reminders = await db.find_due_reminders(now, owner_ids=owner_ids)

    assert [r.reminder_id for r in reminders] == ["reminder_1"]
    db.reminders_table.scan.assert_called_once()
    condition = db.reminders_table.scan.call_args.kwargs["FilterExpression"]
    expression = ConditionExpressionBuilder().build_expression(condition).condition_expression
    assert " IN " not in expression


@pytest.mark.asyncio
async def test_find_due_reminders_few_owners_filters_in_scan(db, now):
    db.reminders_table.scan.return_value = {"Items": [reminder_item(now, "reminder_1")]}

    await db.find_due_reminders(now, owner_ids=["emp_1", "emp_2"])

    condition = db.reminders_table.scan.call_args.kwargs["FilterExpression"]
    expression = ConditionExpressionBuilder().build_expression(condition).condition_expression
    assert " IN " in expression
