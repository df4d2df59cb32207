"""Resident registry endpoints - listing, lookup, profile updates and block/house directories"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from rt_finance.api.dependencies import get_request_id
from rt_finance.api.errors import to_http_exception
from rt_finance.api.v1.schemas import (
    BlockHousesResponse, BlocksResponse, ResidentListResponse, ResidentSchema,
    ResidentUpdateRequest, ResidentUpdateResponse,
)
from rt_finance.domain.exceptions import DomainException
from rt_finance.infrastructure.database.session import get_db
from rt_finance.services.residents import ResidentRegistry

router = APIRouter()


@router.get("/residents", response_model=ResidentListResponse)
def list_residents(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    block: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Case-insensitive fragment of the resident's name"),
    db: Session = Depends(get_db),
):
    """Residents ordered by block, paginated"""
    return ResidentRegistry(db).list_residents(page=page, limit=limit, block=block, search=search)


@router.get("/residents/{resident_id}", response_model=ResidentSchema)
def get_resident(resident_id: int, request: Request, db: Session = Depends(get_db)):
    try:
        return ResidentRegistry(db).get(resident_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))


@router.put("/residents/{resident_id}", response_model=ResidentUpdateResponse)
def update_resident(resident_id: int, body: ResidentUpdateRequest, request: Request, db: Session = Depends(get_db)):
    try:
        resident = ResidentRegistry(db).update_by_id(resident_id, body.model_dump())
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return ResidentUpdateResponse(resident=ResidentSchema.model_validate(resident))


@router.get("/residents/{block}/{house_number}", response_model=ResidentSchema)
def get_resident_by_house(block: str, house_number: str, request: Request, db: Session = Depends(get_db)):
    try:
        return ResidentRegistry(db).get_by_house(block, house_number)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))


@router.put("/residents/{block}/{house_number}", response_model=ResidentUpdateResponse)
def update_resident_by_house(
    block: str,
    house_number: str,
    body: ResidentUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Update full_name, occupancy_type, house_status or notes of one household"""
    try:
        resident = ResidentRegistry(db).update_by_house(block, house_number, body.model_dump())
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return ResidentUpdateResponse(resident=ResidentSchema.model_validate(resident))


@router.get("/blocks", response_model=BlocksResponse)
def list_blocks(db: Session = Depends(get_db)):
    blocks = ResidentRegistry(db).blocks()
    return BlocksResponse(total=len(blocks), blocks=blocks)


@router.get("/houses-number", response_model=List[str])
def list_house_numbers(request: Request, block: Optional[str] = Query(None), db: Session = Depends(get_db)):
    """House numbers of one block, in registration order"""
    try:
        return ResidentRegistry(db).house_numbers(block)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))


@router.get("/block-houses", response_model=BlockHousesResponse)
def list_block_houses(db: Session = Depends(get_db)):
    """Every block with its houses in natural order (2, 10, 12A, 12B)"""
    data = ResidentRegistry(db).block_houses()
    return BlockHousesResponse(total_blocks=len(data), data=data)
