"""
Handoff Code Verification Tests.

High-value packages need the warehouse code checked at the hub and the
delivery code checked at the door.
"""

from datetime import timedelta

import pytest
from sqlalchemy import select, func

from custody.app.core.exceptions import (
    CodeMismatch,
    TransitionGuard,
    TransitionRejected,
    ValidationError,
)
from custody.app.domain.custody.dispatch import DispatchService
from custody.app.models.custody_enums import CustodyEvent
from custody.app.models.custody_log import CustodyLogEntry
from custody.app.models.package_enums import PackageStatus, VerificationKind
from conftest import bring_to_hub


async def out_for_delivery(state_machine, customer, rider, admin, declared_value=15000):
    package = await bring_to_hub(state_machine, customer, rider, declared_value)
    return await DispatchService(state_machine).dispatch(admin, package.id, rider.id)


@pytest.mark.asyncio
async def test_warehouse_code_verified(state_machine, customer, rider):
    package = await bring_to_hub(state_machine, customer, rider, declared_value=15000)

    result = await state_machine.verify_code(
        rider, package.id, VerificationKind.WAREHOUSE, package.warehouse_code
    )
    assert result.kind == VerificationKind.WAREHOUSE
    assert result.package.warehouse_verified is True
    assert result.package.status == PackageStatus.AT_WAREHOUSE

    log = await state_machine.list_custody_log(package.id)
    assert log[-1].event == CustodyEvent.OTP_WAREHOUSE_VERIFIED
    assert log[-1].created_at == result.verified_at
    assert result.verified_at.utcoffset() == timedelta(0)


@pytest.mark.asyncio
async def test_wrong_code_changes_nothing(state_machine, customer, rider, db_session, change_feed):
    package = await bring_to_hub(state_machine, customer, rider, declared_value=15000)
    package_id = package.id
    wrong = "1000" if package.warehouse_code != "1000" else "1001"
    published = len(change_feed.changes)

    with pytest.raises(CodeMismatch) as exc_info:
        await state_machine.verify_code(rider, package_id, "warehouse", wrong)
    assert exc_info.value.status_code == 400

    package = await state_machine.packages.get(package_id)
    assert package.warehouse_verified is False
    count = await db_session.execute(
        select(func.count(CustodyLogEntry.id)).where(CustodyLogEntry.package_id == package_id)
    )
    assert count.scalar() == 3
    assert len(change_feed.changes) == published


@pytest.mark.asyncio
async def test_delivery_code_not_accepted_at_warehouse(state_machine, customer, rider):
    package = await bring_to_hub(state_machine, customer, rider, declared_value=15000)
    with pytest.raises(CodeMismatch):
        await state_machine.verify_code(rider, package.id, "warehouse", package.delivery_code)


@pytest.mark.asyncio
async def test_verify_twice_rejected(state_machine, customer, rider):
    package = await bring_to_hub(state_machine, customer, rider, declared_value=15000)
    await state_machine.verify_code(rider, package.id, "warehouse", package.warehouse_code)

    with pytest.raises(TransitionRejected) as exc_info:
        await state_machine.verify_code(rider, package.id, "warehouse", package.warehouse_code)
    assert exc_info.value.guard == TransitionGuard.ALREADY_VERIFIED


@pytest.mark.asyncio
async def test_only_bound_rider_may_verify(state_machine, customer, rider, other_rider):
    package = await bring_to_hub(state_machine, customer, rider, declared_value=15000)
    with pytest.raises(TransitionRejected) as exc_info:
        await state_machine.verify_code(other_rider, package.id, "warehouse", package.warehouse_code)
    assert exc_info.value.guard == TransitionGuard.WRONG_ACTOR


@pytest.mark.asyncio
async def test_verification_not_applicable_to_low_value(state_machine, customer, rider):
    package = await bring_to_hub(state_machine, customer, rider, declared_value=3000)
    with pytest.raises(ValidationError):
        await state_machine.verify_code(rider, package.id, "warehouse", "1234")


@pytest.mark.asyncio
async def test_unknown_kind_rejected(state_machine, customer, rider):
    package = await bring_to_hub(state_machine, customer, rider, declared_value=15000)
    with pytest.raises(ValidationError):
        await state_machine.verify_code(rider, package.id, "pickup", package.warehouse_code)


@pytest.mark.asyncio
async def test_delivery_code_requires_out_for_delivery(state_machine, customer, rider, other_rider):
    package = await bring_to_hub(state_machine, customer, rider, declared_value=15000)
    await state_machine.accept_delivery(other_rider, package.id)

    with pytest.raises(TransitionRejected) as exc_info:
        await state_machine.verify_code(other_rider, package.id, "delivery", package.delivery_code)
    assert exc_info.value.guard == TransitionGuard.WRONG_STATE


@pytest.mark.asyncio
async def test_high_value_delivery_requires_verified_code(state_machine, customer, rider, admin):
    package = await out_for_delivery(state_machine, customer, rider, admin)
    package_id, delivery_code = package.id, package.delivery_code

    with pytest.raises(TransitionRejected) as exc_info:
        await state_machine.mark_delivered(rider, package_id)
    assert exc_info.value.guard == TransitionGuard.VERIFICATION_REQUIRED

    result = await state_machine.verify_code(rider, package_id, "delivery", delivery_code)
    assert result.package.delivery_verified is True

    package = await state_machine.mark_delivered(rider, package_id)
    assert package.status == PackageStatus.DELIVERED

    log = await state_machine.list_custody_log(package.id)
    assert [e.event for e in log][-2:] == [CustodyEvent.OTP_DELIVERY_VERIFIED, CustodyEvent.DELIVERED]
    assert log[-2].location == package.delivery_address


@pytest.mark.asyncio
async def test_full_high_value_lifecycle(state_machine, customer, rider, admin):
    package = await bring_to_hub(state_machine, customer, rider, declared_value=15000)
    await state_machine.verify_code(rider, package.id, "warehouse", package.warehouse_code)
    await DispatchService(state_machine).dispatch(admin, package.id, rider.id)
    await state_machine.verify_code(rider, package.id, "delivery", package.delivery_code)
    package = await state_machine.mark_delivered(rider, package.id)

    assert package.warehouse_verified is True
    assert package.delivery_verified is True
    log = await state_machine.list_custody_log(package.id)
    assert [e.event for e in log] == [
        CustodyEvent.ORDER_PLACED,
        CustodyEvent.COLLECTED_FROM_CUSTOMER,
        CustodyEvent.ARRIVED_AT_WAREHOUSE,
        CustodyEvent.OTP_WAREHOUSE_VERIFIED,
        CustodyEvent.DISPATCHED_TO_RIDER,
        CustodyEvent.OUT_FOR_DELIVERY,
        CustodyEvent.OTP_DELIVERY_VERIFIED,
        CustodyEvent.DELIVERED,
    ]


@pytest.mark.asyncio
async def test_dispatch_gate_on_warehouse_verification(state_machine, customer, rider, admin, mocker):
    mocker.patch.object(state_machine.config, "require_warehouse_verification_for_dispatch", True)
    package_id = (await bring_to_hub(state_machine, customer, rider, declared_value=15000)).id

    with pytest.raises(TransitionRejected) as exc_info:
        await DispatchService(state_machine).dispatch(admin, package_id, rider.id)
    assert exc_info.value.guard == TransitionGuard.VERIFICATION_REQUIRED

    package = await state_machine.packages.get(package_id)
    assert package.delivery_rider_id is None
    assert package.status == PackageStatus.AT_WAREHOUSE
