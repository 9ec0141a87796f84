"""
Admin API Endpoints.

Hub inventory, rider roster, dispatch and the dashboard. The admin sees the
warehouse code so the hub can hand it to the collection rider.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, Query
from custody.app.core.guards import require_admin
from custody.app.core.dependencies import get_state_machine, get_dispatch_service
from custody.app.domain.custody.actor import Actor
from custody.app.domain.custody.dispatch import DispatchService
from custody.app.domain.custody.state_machine import PackageStateMachine
from custody.app.models.package_enums import PackageStatus, Zone
from custody.app.schemas.admin import (
    AccountResponse,
    RiderListResponse,
    DispatchRequest,
    SummaryResponse,
)
from custody.app.schemas.custody import CustodyLogEntryResponse, CustodyLogResponse
from custody.app.schemas.package import AdminPackageResponse, AdminPackageListResponse

router = APIRouter(prefix="/admin", tags=["Admin - Hub Operations"])

IN_TRANSIT_STATUSES = (
    PackageStatus.SEARCHING_RIDER,
    PackageStatus.PICKED_UP,
    PackageStatus.OUT_FOR_DELIVERY,
)


@router.get("/packages/at-hub", response_model=AdminPackageListResponse)
async def list_hub_inventory(
    admin: Actor = Depends(require_admin),
    state_machine: PackageStateMachine = Depends(get_state_machine)
):
    packages = await state_machine.packages.list_by_status(PackageStatus.AT_WAREHOUSE)
    return AdminPackageListResponse(
        packages=[AdminPackageResponse.model_validate(p) for p in packages],
        total=len(packages),
    )


@router.get("/riders", response_model=RiderListResponse)
async def list_riders(
    zone: Optional[Zone] = Query(None, description="Only riders based in this zone"),
    package_id: Optional[int] = Query(None, description="Candidates for this package's delivery zone"),
    admin: Actor = Depends(require_admin),
    dispatch_service: DispatchService = Depends(get_dispatch_service)
):
    """
    Active riders, optionally narrowed to a zone.

    When the zone has no riders every active rider is returned and
    ``zone_fallback`` is set.
    """
    accounts = dispatch_service.state_machine.accounts
    if package_id is not None:
        package = await dispatch_service.state_machine.packages.get(package_id)
        riders = await dispatch_service.candidate_riders(package_id)
        zone = package.delivery_zone
        fallback = any(r.home_zone != zone for r in riders)
    else:
        riders = await accounts.list_riders(zone)
        fallback = False
        if zone is not None and not riders:
            riders = await accounts.list_riders()
            fallback = True

    return RiderListResponse(
        riders=[AccountResponse.model_validate(r) for r in riders],
        total=len(riders),
        zone=zone,
        zone_fallback=fallback,
    )


@router.post("/packages/{package_id}/dispatch", response_model=AdminPackageResponse)
async def dispatch_package(
    request: DispatchRequest,
    package_id: int = Path(..., description="Package ID"),
    admin: Actor = Depends(require_admin),
    dispatch_service: DispatchService = Depends(get_dispatch_service)
):
    """
    Bind a delivery rider and send the package out, all or nothing.

    A rider from another zone is rejected unless ``override_zone`` is set.
    """
    package = await dispatch_service.dispatch(
        admin, package_id, request.rider_id, override_zone=request.override_zone
    )
    return AdminPackageResponse.model_validate(package)


@router.get("/summary", response_model=SummaryResponse)
async def hub_summary(
    admin: Actor = Depends(require_admin),
    state_machine: PackageStateMachine = Depends(get_state_machine)
):
    totals = await state_machine.packages.status_totals()
    empty = {"count": 0, "fees": 0, "declared_value": 0}

    return SummaryResponse(
        at_hub=totals.get(PackageStatus.AT_WAREHOUSE, empty)["count"],
        in_transit=sum(totals.get(s, empty)["count"] for s in IN_TRANSIT_STATUSES),
        delivered=totals.get(PackageStatus.DELIVERED, empty)["count"],
        total_fees=int(sum(t["fees"] for t in totals.values())),
        value_in_transit=float(sum(totals.get(s, empty)["declared_value"] for s in IN_TRANSIT_STATUSES)),
    )


@router.get("/custody-log", response_model=CustodyLogResponse)
async def recent_custody_events(
    limit: int = Query(100, ge=1, le=500),
    admin: Actor = Depends(require_admin),
    state_machine: PackageStateMachine = Depends(get_state_machine)
):
    """Latest custody events across every package, newest first."""
    entries = await state_machine.ledger.list_recent(limit)
    return CustodyLogResponse(
        entries=[CustodyLogEntryResponse.model_validate(e) for e in entries],
        total=len(entries),
    )
