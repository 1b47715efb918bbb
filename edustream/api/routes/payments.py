"""
API endpoints for the caller's payment history.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from edustream.api.deps import get_subscription_service, require_payer
from edustream.db.base import get_db
from edustream.schemas import Pagination, PaymentDetail, PaymentHistory, Principal
from edustream.services.subscription import SubscriptionService

router = APIRouter()


@router.get("/history", response_model=PaymentHistory)
async def payment_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(require_payer),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
    db: Session = Depends(get_db),
):
    payments, total = subscriptions.list_payments(principal.user_id, db, page=page, limit=limit)
    return PaymentHistory(
        payments=[PaymentDetail.model_validate(p) for p in payments],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/{payment_id}", response_model=PaymentDetail)
async def get_payment(
    payment_id: str,
    principal: Principal = Depends(require_payer),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
    db: Session = Depends(get_db),
):
    """Get one of the caller's payments. Other users' payments are reported as not found."""
    return subscriptions.get_payment(principal.user_id, payment_id, db)
