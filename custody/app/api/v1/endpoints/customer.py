"""
Customer API Endpoints.

Booking and "my packages". The customer sees the delivery code so they can
hand it to the delivery rider at the door.
"""

from fastapi import APIRouter, Depends, status, Path
from custody.app.core.guards import require_customer
from custody.app.core.dependencies import get_state_machine
from custody.app.domain.custody.actor import Actor
from custody.app.domain.custody.state_machine import PackageStateMachine, Route
from custody.app.schemas.package import (
    PackageCreate,
    CustomerPackageResponse,
    CustomerPackageListResponse,
)

router = APIRouter(prefix="/customer", tags=["Customer - Packages"])


@router.post("/packages", response_model=CustomerPackageResponse, status_code=status.HTTP_201_CREATED)
async def create_package(
    package_data: PackageCreate,
    actor: Actor = Depends(require_customer),
    state_machine: PackageStateMachine = Depends(get_state_machine)
):
    """
    Book a package for collection.

    Fees and, above the high-value threshold, the two handoff codes are fixed
    here and never change afterwards.
    """
    package = await state_machine.create_package(
        actor,
        Route(
            pickup_address=package_data.route.pickup_address,
            delivery_address=package_data.route.delivery_address,
            delivery_zone=package_data.route.delivery_zone,
        ),
        description=package_data.description,
        size=package_data.size,
        declared_value=package_data.declared_value,
        weight_kg=package_data.weight_kg,
    )
    return CustomerPackageResponse.model_validate(package)


@router.get("/packages", response_model=CustomerPackageListResponse)
async def list_my_packages(
    actor: Actor = Depends(require_customer),
    state_machine: PackageStateMachine = Depends(get_state_machine)
):
    packages = await state_machine.packages.list_for_customer(actor.id)
    return CustomerPackageListResponse(
        packages=[CustomerPackageResponse.model_validate(p) for p in packages],
        total=len(packages),
    )


@router.get("/packages/{package_id}", response_model=CustomerPackageResponse)
async def get_my_package(
    package_id: int = Path(..., description="Package ID"),
    actor: Actor = Depends(require_customer),
    state_machine: PackageStateMachine = Depends(get_state_machine)
):
    package = await state_machine.get_package(actor, package_id)
    return CustomerPackageResponse.model_validate(package)
