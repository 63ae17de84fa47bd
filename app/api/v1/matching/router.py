from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import AssignPenpalsResponse, MatchUnitsRequest, MatchUnitsResponse, SuggestionsResponse
from . import service

router = APIRouter(prefix="/api/v1/matching", tags=["matching"])


@router.get("/suggestions", response_model=SuggestionsResponse)
async def get_suggestions(
    db: AsyncSession = Depends(get_db),
) -> SuggestionsResponse:
    """Greedy cross-regional suggestions among READY standalone schools. Creates nothing."""
    try:
        return await service.get_suggestions(db)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/match-units", response_model=MatchUnitsResponse, status_code=status.HTTP_200_OK)
async def match_units(
    payload: MatchUnitsRequest,
    db: AsyncSession = Depends(get_db),
) -> MatchUnitsResponse:
    """Record a match between two units: two schools, two groups, or one of each."""
    try:
        return await service.record_match(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/assign-penpals", response_model=AssignPenpalsResponse, status_code=status.HTTP_201_CREATED)
async def assign_penpals(
    payload: MatchUnitsRequest,
    db: AsyncSession = Depends(get_db),
) -> AssignPenpalsResponse:
    """Match (if needed) and assign student pen pals between two units. Runs once per match."""
    try:
        return await service.assign_penpals(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
