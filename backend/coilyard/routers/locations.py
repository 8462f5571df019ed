"""Ground location router.

Endpoints:
    GET    /api/locations/                 List locations (bay / zone filters)
    POST   /api/locations/                 Create one location
    POST   /api/locations/bulk             Generate a grid of locations
    PATCH  /api/locations/{location_id}    Update a location
    DELETE /api/locations/{location_id}    Delete (only if no position uses it)
"""

from fastapi import APIRouter, Depends, Query, status

from coilyard.deps import get_stores
from coilyard.schemas.location import (
    BulkLocationRequest,
    LocationCreate,
    LocationRecord,
    LocationUpdate,
)
from coilyard.services.yard_setup import YardSetupService
from coilyard.store.base import YardStores

router = APIRouter()


@router.get("/", response_model=list[LocationRecord])
async def list_locations(
    bay: str | None = Query(None),
    zone: str | None = Query(None),
    stores: YardStores = Depends(get_stores),
):
    return await YardSetupService(stores).list_locations(bay=bay, zone=zone)


@router.post("/", response_model=LocationRecord, status_code=status.HTTP_201_CREATED)
async def create_location(
    body: LocationCreate,
    stores: YardStores = Depends(get_stores),
):
    return await YardSetupService(stores).create_location(body)


@router.post("/bulk", response_model=list[LocationRecord], status_code=status.HTTP_201_CREATED)
async def bulk_generate_locations(
    body: BulkLocationRequest,
    stores: YardStores = Depends(get_stores),
):
    """Create ``{prefix}{n:03d}`` for n in [start_num, end_num] on a rows x cols grid."""
    return await YardSetupService(stores).bulk_generate(body)


@router.patch("/{location_id}", response_model=LocationRecord)
async def update_location(
    location_id: str,
    body: LocationUpdate,
    stores: YardStores = Depends(get_stores),
):
    return await YardSetupService(stores).update_location(location_id, body)


@router.delete("/{location_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_location(
    location_id: str,
    stores: YardStores = Depends(get_stores),
):
    await YardSetupService(stores).delete_location(location_id)
