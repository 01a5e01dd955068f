"""
Test reminder service: creation, owner transitions, ownership and reporting
"""

import pytest
from datetime import timedelta

from estatecrm.errors import AuthorizationError, NotFoundError, ValidationError
from estatecrm.models.employee import Employee
from estatecrm.models.reminder import AssignmentType, ReminderStatus, RepeatInterval, ResponseColor


async def create(service, now, **kwargs):
    params = dict(
        owner_id="emp_1",
        title="Call back buyer",
        body="Discuss the 3BHK listing",
        due_at=now - timedelta(minutes=1),
    )
    params.update(kwargs)
    return await service.create(**params)


# =============================================================================
# CREATE
# =============================================================================

@pytest.mark.asyncio
async def test_create_reminder(reminder_service, store, now):
    reminder = await create(reminder_service, now, phone=" 555-0100 ", email="")

    assert reminder.reminder_id.startswith("reminder_")
    assert reminder.status == ReminderStatus.PENDING
    assert reminder.is_repeating is False
    assert reminder.next_trigger is None
    assert reminder.phone == "555-0100"
    assert reminder.email is None
    assert reminder.created_at == now
    assert reminder.reminder_id in store.reminders


@pytest.mark.asyncio
async def test_create_repeating_sets_first_trigger(reminder_service, now):
    due_at = now + timedelta(hours=2)
    reminder = await create(
        reminder_service, now, due_at=due_at, is_repeating=True, repeat_interval=RepeatInterval.WEEKLY
    )

    assert reminder.is_repeating
    assert reminder.repeat_interval == RepeatInterval.WEEKLY
    assert reminder.next_trigger == due_at


@pytest.mark.asyncio
async def test_create_repeating_defaults_to_daily(reminder_service, now):
    reminder = await create(reminder_service, now, is_repeating=True)

    assert reminder.repeat_interval == RepeatInterval.DAILY


@pytest.mark.asyncio
@pytest.mark.parametrize("title", ["", "   ", "x" * 101])
async def test_create_rejects_bad_title(reminder_service, store, now, title):
    with pytest.raises(ValidationError):
        await create(reminder_service, now, title=title)

    assert store.reminders == {}


@pytest.mark.asyncio
async def test_create_from_lead(reminder_service, now):
    reminder = await reminder_service.create_from_lead(
        owner_id="emp_1",
        name="Priya Shah",
        reminder_time=now + timedelta(days=1),
        phone="555-0101",
        location="Baner, Pune",
    )

    assert reminder.title == "Follow up with Priya Shah"
    assert reminder.body == "Reminder to follow up with Priya Shah"
    assert reminder.client_name == "Priya Shah"
    assert reminder.assignment_type == AssignmentType.LEAD


@pytest.mark.asyncio
async def test_create_from_lead_requires_name(reminder_service, now):
    with pytest.raises(ValidationError):
        await reminder_service.create_from_lead(owner_id="emp_1", name=" ", reminder_time=now)


# =============================================================================
# OWNER TRANSITIONS
# =============================================================================

@pytest.mark.asyncio
async def test_complete_one_word_is_red(reminder_service, store, now):
    reminder = await create(reminder_service, now)

    completed = await reminder_service.complete(reminder.reminder_id, "emp_1", "ok")

    assert completed.status == ReminderStatus.COMPLETED
    assert completed.last_completion.word_count == 1
    stored = await store.get_reminder(reminder.reminder_id)
    assert stored.status == ReminderStatus.COMPLETED
    assert stored.last_completion.color == ResponseColor.RED


@pytest.mark.asyncio
async def test_complete_two_words(reminder_service, now):
    reminder = await create(reminder_service, now)

    completed = await reminder_service.complete(reminder.reminder_id, "emp_1", "called client")

    assert completed.status == ReminderStatus.COMPLETED
    assert completed.last_completion.word_count == 2
    assert completed.last_completion.color == ResponseColor.RED


@pytest.mark.asyncio
@pytest.mark.parametrize("note", ["", "   "])
async def test_complete_empty_note_leaves_reminder_unchanged(reminder_service, store, now, note):
    reminder = await create(reminder_service, now)
    saves = store.save_count

    with pytest.raises(ValidationError):
        await reminder_service.complete(reminder.reminder_id, "emp_1", note)

    stored = await store.get_reminder(reminder.reminder_id)
    assert stored.status == ReminderStatus.PENDING
    assert stored.completed_at is None
    assert store.save_count == saves


@pytest.mark.asyncio
async def test_snooze_uses_default_minutes(reminder_service, now):
    reminder = await create(reminder_service, now)

    snoozed = await reminder_service.snooze(reminder.reminder_id, "emp_1")

    assert snoozed.status == ReminderStatus.SNOOZED
    assert snoozed.snoozed_until == now + timedelta(minutes=15)
    assert snoozed.snooze_count == 1


@pytest.mark.asyncio
async def test_dismiss_repeating_keeps_history(reminder_service, store, now):
    reminder = await create(reminder_service, now, is_repeating=True)
    await reminder_service.edit(reminder.reminder_id, "emp_1", {"body": "Bring the brochure"})

    dismissed = await reminder_service.dismiss(reminder.reminder_id, "emp_1")

    assert dismissed.status == ReminderStatus.PENDING
    assert dismissed.active is False
    assert len(dismissed.edit_history) == 1
    assert await store.find_due_reminders(now + timedelta(days=2)) == []


@pytest.mark.asyncio
async def test_closed_reminder_rejects_transitions(reminder_service, now):
    reminder = await create(reminder_service, now)
    await reminder_service.dismiss(reminder.reminder_id, "emp_1")

    with pytest.raises(ValidationError):
        await reminder_service.snooze(reminder.reminder_id, "emp_1", 10)

    with pytest.raises(ValidationError):
        await reminder_service.complete(reminder.reminder_id, "emp_1", "done")


@pytest.mark.asyncio
async def test_edit_appends_history(reminder_service, now):
    reminder = await create(reminder_service, now)
    new_due = now + timedelta(days=1)

    edited = await reminder_service.edit(
        reminder.reminder_id, "emp_1", {"title": "Call back seller", "due_at": new_due}
    )

    assert edited.title == "Call back seller"
    assert edited.due_at == new_due
    assert len(edited.edit_history) == 1
    assert edited.edit_history[0].old_content.title == "Call back buyer"
    assert edited.edit_history[0].edited_by == "emp_1"


@pytest.mark.asyncio
async def test_delete(reminder_service, store, now):
    reminder = await create(reminder_service, now)

    await reminder_service.delete(reminder.reminder_id, "emp_1")

    assert reminder.reminder_id not in store.reminders


# =============================================================================
# OWNERSHIP
# =============================================================================

@pytest.mark.asyncio
async def test_other_employee_cannot_mutate(reminder_service, store, now):
    reminder = await create(reminder_service, now)

    with pytest.raises(AuthorizationError):
        await reminder_service.complete(reminder.reminder_id, "emp_2", "done by someone else")
    with pytest.raises(AuthorizationError):
        await reminder_service.delete(reminder.reminder_id, "emp_2")

    stored = await store.get_reminder(reminder.reminder_id)
    assert stored.status == ReminderStatus.PENDING


@pytest.mark.asyncio
async def test_admin_override(reminder_service, now):
    reminder = await create(reminder_service, now)

    snoozed = await reminder_service.snooze(reminder.reminder_id, "admin_1", 30, is_admin=True)

    assert snoozed.status == ReminderStatus.SNOOZED
    assert snoozed.owner_id == "emp_1"


@pytest.mark.asyncio
async def test_missing_reminder(reminder_service):
    with pytest.raises(NotFoundError):
        await reminder_service.dismiss("reminder_missing", "emp_1")


# =============================================================================
# QUERIES
# =============================================================================

@pytest.mark.asyncio
async def test_list_for_owner_paginates_by_due_time(reminder_service, now):
    for hours in (3, 1, 2):
        await create(reminder_service, now, title=f"In {hours}h", due_at=now + timedelta(hours=hours))
    await create(reminder_service, now, owner_id="emp_2")

    page, total = await reminder_service.list_for_owner("emp_1", page=1, limit=2)

    assert total == 3
    assert [r.title for r in page] == ["In 1h", "In 2h"]

    page, total = await reminder_service.list_for_owner("emp_1", page=2, limit=2)
    assert [r.title for r in page] == ["In 3h"]


@pytest.mark.asyncio
async def test_list_for_owner_rejects_bad_limit(reminder_service):
    with pytest.raises(ValidationError):
        await reminder_service.list_for_owner("emp_1", limit=0)


@pytest.mark.asyncio
async def test_owner_stats(reminder_service, now):
    await create(reminder_service, now)
    await create(reminder_service, now, due_at=now + timedelta(days=1))
    done = await create(reminder_service, now)
    await reminder_service.complete(done.reminder_id, "emp_1", "called and confirmed the visit")

    stats = await reminder_service.owner_stats("emp_1")

    assert stats["pending"] == 2
    assert stats["completed"] == 1
    assert stats["total"] == 3
    assert stats["due"] == 1


# =============================================================================
# ADMIN
# =============================================================================

@pytest.mark.asyncio
async def test_admin_due_by_employee_only_popup_enabled(reminder_service, store, now):
    await store.save_employee(Employee(employee_id="emp_1", name="Asha", admin_reminder_popup_enabled=True, updated_at=now))
    await store.save_employee(Employee(employee_id="emp_2", name="Ravi", updated_at=now))
    await create(reminder_service, now, owner_id="emp_1")
    await create(reminder_service, now, owner_id="emp_1", title="Second")
    await create(reminder_service, now, owner_id="emp_2")

    groups = await reminder_service.admin_due_by_employee()

    assert len(groups) == 1
    assert groups[0]["employee"].name == "Asha"
    assert len(groups[0]["reminders"]) == 2


@pytest.mark.asyncio
async def test_admin_stats(reminder_service, store, now):
    await store.save_employee(Employee(employee_id="emp_1", name="Asha", admin_reminder_popup_enabled=True, updated_at=now))
    await store.save_employee(Employee(employee_id="emp_2", name="Ravi", updated_at=now))
    first = await create(reminder_service, now, owner_id="emp_1")
    await create(reminder_service, now, owner_id="emp_1", due_at=now + timedelta(days=1))
    await create(reminder_service, now, owner_id="emp_2")
    await reminder_service.complete(first.reminder_id, "emp_1", "ok")

    stats = await reminder_service.admin_stats()

    assert stats["employees"] == {"total": 2, "with_popup_enabled": 1}
    assert stats["reminders"]["total"] == 3
    assert stats["reminders"]["pending"] == 2
    assert stats["reminders"]["completed"] == 1
    assert stats["reminders"]["currently_due"] == 1
    assert stats["reminders"]["by_response_color"] == {"red": 1}
    assert stats["top_employees"][0] == {"employee_id": "emp_1", "name": "Asha", "reminder_count": 2}
