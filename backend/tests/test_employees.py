"""
Test employee device registration
"""

import pytest
from unittest.mock import AsyncMock

from estatecrm.errors import TransportError, ValidationError
from estatecrm.services.employees import EmployeeService


@pytest.mark.asyncio
async def test_register_device_token_registers_push_endpoint(store, clock):
    push = AsyncMock()
    service = EmployeeService(store, clock=clock, push_service=push)

    employee = await service.register_device_token("emp_1", " fcm-token-1 ")

    push.register_device.assert_awaited_once_with("fcm-token-1")
    assert employee.device_token == "fcm-token-1"
    assert store.employees["emp_1"]["device_token"] == "fcm-token-1"


@pytest.mark.asyncio
async def test_register_device_token_survives_provider_outage(store, clock):
    push = AsyncMock()
    push.register_device.side_effect = TransportError("Throttling: slow down")
    service = EmployeeService(store, clock=clock, push_service=push)

    await service.register_device_token("emp_1", "fcm-token-1")

    assert store.employees["emp_1"]["device_token"] == "fcm-token-1"


@pytest.mark.asyncio
async def test_register_device_token_rejected_token(store, clock):
    push = AsyncMock()
    push.register_device.side_effect = TransportError(
        "InvalidParameter: Token Reason: malformed", is_token_invalid=True
    )
    service = EmployeeService(store, clock=clock, push_service=push)

    with pytest.raises(ValidationError):
        await service.register_device_token("emp_1", "bad-token")

    assert "emp_1" not in store.employees
