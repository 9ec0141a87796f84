"""
Dispatch Assignment Tests.

Admin binds a delivery rider and sends the package out in one unit.
"""

import pytest
from sqlalchemy import select, func

from custody.app.core.exceptions import (
    ConflictLost,
    ResourceNotFoundError,
    TransitionGuard,
    TransitionRejected,
)
from custody.app.domain.custody.dispatch import DispatchService
from custody.app.models.custody_enums import CustodyEvent
from custody.app.models.custody_log import CustodyLogEntry
from custody.app.models.enums import ActorRole
from custody.app.models.package_enums import PackageStatus, Zone
from custody.app.domain.custody.state_machine import Route
from conftest import book, bring_to_hub, create_account


@pytest.fixture
def dispatch_service(state_machine):
    return DispatchService(state_machine)


async def ledger_count(db_session, package_id):
    result = await db_session.execute(
        select(func.count(CustodyLogEntry.id)).where(CustodyLogEntry.package_id == package_id)
    )
    return result.scalar()


@pytest.mark.asyncio
async def test_dispatch_binds_and_sends_out(dispatch_service, state_machine, customer, rider, other_rider, admin):
    package = await bring_to_hub(state_machine, customer, rider)
    package = await dispatch_service.dispatch(admin, package.id, other_rider.id)

    assert package.status == PackageStatus.OUT_FOR_DELIVERY
    assert package.delivery_rider_id == other_rider.id

    log = await state_machine.list_custody_log(package.id)
    dispatched, out = log[-2], log[-1]
    assert dispatched.event == CustodyEvent.DISPATCHED_TO_RIDER
    assert (dispatched.actor_id, dispatched.actor_role) == (admin.id, ActorRole.ADMIN)
    assert dispatched.notes == "Assigned to Grace Wanjiru"
    assert out.event == CustodyEvent.OUT_FOR_DELIVERY
    assert (out.actor_id, out.actor_role) == (other_rider.id, ActorRole.RIDER)


@pytest.mark.asyncio
async def test_dispatch_after_self_serve_accept(dispatch_service, state_machine, customer, rider, other_rider, admin):
    package = await bring_to_hub(state_machine, customer, rider)
    await state_machine.accept_delivery(other_rider, package.id)

    package = await dispatch_service.dispatch(admin, package.id, other_rider.id)
    assert package.status == PackageStatus.OUT_FOR_DELIVERY
    assert package.delivery_rider_id == other_rider.id


@pytest.mark.asyncio
async def test_dispatch_to_different_rider_than_accepted(
    dispatch_service, state_machine, customer, rider, other_rider, admin, db_session
):
    package_id = (await bring_to_hub(state_machine, customer, rider)).id
    await state_machine.accept_delivery(other_rider, package_id)
    before = await ledger_count(db_session, package_id)

    with pytest.raises(ConflictLost):
        await dispatch_service.dispatch(admin, package_id, rider.id)

    package = await state_machine.packages.get(package_id)
    assert package.delivery_rider_id == other_rider.id
    assert package.status == PackageStatus.AT_WAREHOUSE
    assert await ledger_count(db_session, package_id) == before


@pytest.mark.asyncio
async def test_taken_job_reports_conflict_before_zone(
    dispatch_service, state_machine, customer, rider, other_rider, karen_rider, admin, db_session
):
    package_id = (await bring_to_hub(state_machine, customer, rider)).id
    await state_machine.accept_delivery(other_rider, package_id)
    before = await ledger_count(db_session, package_id)

    with pytest.raises(ConflictLost) as exc_info:
        await dispatch_service.dispatch(admin, package_id, karen_rider.id)
    assert exc_info.value.guard == TransitionGuard.ALREADY_BOUND

    package = await state_machine.packages.get(package_id)
    assert package.delivery_rider_id == other_rider.id
    assert await ledger_count(db_session, package_id) == before


@pytest.mark.asyncio
async def test_dispatch_zone_mismatch(dispatch_service, state_machine, customer, rider, karen_rider, admin):
    package_id = (await bring_to_hub(state_machine, customer, rider)).id

    with pytest.raises(TransitionRejected) as exc_info:
        await dispatch_service.dispatch(admin, package_id, karen_rider.id)
    assert exc_info.value.guard == TransitionGuard.ZONE_MISMATCH

    package = await dispatch_service.dispatch(admin, package_id, karen_rider.id, override_zone=True)
    assert package.delivery_rider_id == karen_rider.id
    log = await state_machine.list_custody_log(package_id)
    assert log[-2].notes == "Assigned to Mercy Njeri (zone override)"


@pytest.mark.asyncio
async def test_dispatch_requires_admin(dispatch_service, state_machine, customer, rider):
    package_id = (await bring_to_hub(state_machine, customer, rider)).id
    with pytest.raises(TransitionRejected) as exc_info:
        await dispatch_service.dispatch(rider, package_id, rider.id)
    assert exc_info.value.guard == TransitionGuard.WRONG_ROLE


@pytest.mark.asyncio
async def test_dispatch_requires_package_at_hub(dispatch_service, state_machine, customer, rider, admin):
    package_id = (await book(state_machine, customer)).id
    with pytest.raises(TransitionRejected) as exc_info:
        await dispatch_service.dispatch(admin, package_id, rider.id)
    assert exc_info.value.guard == TransitionGuard.WRONG_STATE


@pytest.mark.asyncio
async def test_dispatch_to_non_rider(dispatch_service, state_machine, customer, rider, admin):
    package_id = (await bring_to_hub(state_machine, customer, rider)).id
    with pytest.raises(TransitionRejected) as exc_info:
        await dispatch_service.dispatch(admin, package_id, customer.id)
    assert exc_info.value.guard == TransitionGuard.NOT_A_RIDER


@pytest.mark.asyncio
async def test_dispatch_to_inactive_rider(dispatch_service, state_machine, customer, rider, admin, db_session):
    package_id = (await bring_to_hub(state_machine, customer, rider)).id
    retired = await create_account(
        db_session, "Old Rider", "+254711000099", ActorRole.RIDER, Zone.WESTLANDS, is_active=False
    )
    with pytest.raises(TransitionRejected) as exc_info:
        await dispatch_service.dispatch(admin, package_id, retired.id)
    assert exc_info.value.guard == TransitionGuard.INACTIVE_RIDER


@pytest.mark.asyncio
async def test_dispatch_unknown_rider(dispatch_service, state_machine, customer, rider, admin):
    package_id = (await bring_to_hub(state_machine, customer, rider)).id
    with pytest.raises(ResourceNotFoundError):
        await dispatch_service.dispatch(admin, package_id, 4242)


@pytest.mark.asyncio
async def test_candidate_riders_by_zone(dispatch_service, state_machine, customer, rider, other_rider, karen_rider):
    package = await bring_to_hub(state_machine, customer, rider)
    riders = await dispatch_service.candidate_riders(package.id)
    assert {r.id for r in riders} == {rider.id, other_rider.id}


@pytest.mark.asyncio
async def test_candidate_riders_fall_back_to_everyone(dispatch_service, state_machine, customer, rider, karen_rider):
    route = Route("Kenyatta Ave 12, CBD", "Kamakis Rd 7, Ruiru", Zone.RUIRU)
    package = await bring_to_hub(state_machine, customer, rider, route=route)

    riders = await dispatch_service.candidate_riders(package.id)
    assert {r.id for r in riders} == {rider.id, karen_rider.id}
