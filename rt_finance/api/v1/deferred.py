"""Deferred (prepaid) subscription endpoints"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from rt_finance.api.dependencies import get_request_id
from rt_finance.api.errors import to_http_exception
from rt_finance.api.v1.schemas import DeferredSubscriptionRequest, DeferredSubscriptionSchema
from rt_finance.domain.exceptions import DomainException
from rt_finance.infrastructure.database.session import get_db
from rt_finance.services.deferred import DeferredSubscriptionTracker

router = APIRouter()


@router.post("/deferred-subscription", response_model=DeferredSubscriptionSchema, status_code=201)
def create_subscription(body: DeferredSubscriptionRequest, request: Request, db: Session = Depends(get_db)):
    try:
        return DeferredSubscriptionTracker(db).create(
            block=body.block,
            house_number=body.house_number,
            total_amount=body.total_amount,
            monthly_amount=body.monthly_amount,
            start_month=body.start_month,
            end_month=body.end_month,
            source_ref=body.source_ref,
        )
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))


@router.get("/deferred-subscription", response_model=List[DeferredSubscriptionSchema])
def list_subscriptions(db: Session = Depends(get_db)):
    return DeferredSubscriptionTracker(db).list_subscriptions()


@router.get("/deferred-subscription/active", response_model=List[DeferredSubscriptionSchema])
def list_active_subscriptions(db: Session = Depends(get_db)):
    return DeferredSubscriptionTracker(db).list_subscriptions(active_only=True)


@router.patch("/deferred-subscription/{subscription_id}/deactivate", response_model=DeferredSubscriptionSchema)
def deactivate_subscription(subscription_id: str, request: Request, db: Session = Depends(get_db)):
    """Manual deactivate (edge cases only)"""
    try:
        subscription_uuid = uuid.UUID(subscription_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid subscription ID format")

    try:
        return DeferredSubscriptionTracker(db).deactivate(subscription_uuid)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
