from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import SchoolStatus
from app.db.session import get_db

from app.api.v1.penpals import service as penpal_service
from app.api.v1.penpals.schemas import PairingStatusResponse, SchoolPenpalListResponse

from .schemas import SchoolResponse
from . import service

router = APIRouter(prefix="/api/v1/schools", tags=["schools"])


@router.get("", response_model=List[SchoolResponse])
async def list_schools(
    status_filter: Optional[SchoolStatus] = Query(None, alias="status", description="Filter by lifecycle status"),
    ungrouped_only: bool = Query(False, description="Only schools that are not in a group"),
    db: AsyncSession = Depends(get_db),
) -> List[SchoolResponse]:
    return await service.list_schools(db, status=status_filter, ungrouped_only=ungrouped_only)


@router.get("/{school_id}", response_model=SchoolResponse)
async def get_school(
    school_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> SchoolResponse:
    obj = await service.get_school(db, school_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="School not found")
    return obj


@router.get("/{school_id}/penpals", response_model=SchoolPenpalListResponse)
async def list_school_penpals(
    school_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> SchoolPenpalListResponse:
    """Every active student of the school with their pen pals, whichever side created the pairing."""
    obj = await penpal_service.list_school_penpals(db, school_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="School not found")
    return obj


@router.get("/{school_id}/pairing-status", response_model=PairingStatusResponse)
async def get_pairing_status(
    school_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> PairingStatusResponse:
    if not await service.get_school(db, school_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="School not found")
    return PairingStatusResponse(school_id=school_id, has_pairings=await penpal_service.has_pairings(db, school_id))
