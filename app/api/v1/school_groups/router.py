from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import GroupMembershipChange, GroupMembershipResult, SchoolGroupCreate, SchoolGroupResponse
from . import service

router = APIRouter(prefix="/api/v1/school-groups", tags=["school-groups"])


@router.post("", response_model=SchoolGroupResponse, status_code=status.HTTP_201_CREATED)
async def create_group(
    payload: SchoolGroupCreate,
    db: AsyncSession = Depends(get_db),
) -> SchoolGroupResponse:
    """Create a group from at least two ungrouped, unlocked schools."""
    try:
        return await service.create_group(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("", response_model=List[SchoolGroupResponse])
async def list_groups(
    db: AsyncSession = Depends(get_db),
) -> List[SchoolGroupResponse]:
    return await service.list_groups(db)


@router.get("/{group_id}", response_model=SchoolGroupResponse)
async def get_group(
    group_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> SchoolGroupResponse:
    obj = await service.get_group(db, group_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="School group not found")
    return obj


@router.post("/{group_id}/members", response_model=GroupMembershipResult)
async def add_members(
    group_id: UUID,
    payload: GroupMembershipChange,
    db: AsyncSession = Depends(get_db),
) -> GroupMembershipResult:
    try:
        return await service.add_members(db, group_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/{group_id}/members/remove", response_model=GroupMembershipResult)
async def remove_members(
    group_id: UUID,
    payload: GroupMembershipChange,
    db: AsyncSession = Depends(get_db),
) -> GroupMembershipResult:
    """Remove schools. outcome=DISSOLVED when fewer than two schools would remain."""
    try:
        return await service.remove_members(db, group_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_group(
    group_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        deleted = await service.delete_group(db, group_id)
        if not deleted:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="School group not found")
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
