"""Coupon lookup for the storefront and admin maintenance."""
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, Request, status
from sqlmodel import Session

from app.api.deps import require_admin
from app.core.database import get_db
from app.core.rate_limit import COUPON_LOOKUP_LIMIT, limiter
from app.models import User
from app.schemas import CouponCreate, CouponRead, CouponUpdate
from app.services import coupon as coupon_service

router = APIRouter(prefix="/api/coupons", tags=["coupons"])


@router.get("/code/{code}", response_model=CouponRead)
@limiter.limit(COUPON_LOOKUP_LIMIT)
def get_coupon_by_code(
    request: Request,
    code: str,
    subtotal: Decimal | None = Query(None, ge=0),
    db: Session = Depends(get_db),
):
    return coupon_service.get_valid_coupon_by_code(db, code, subtotal=subtotal)


@router.post("", response_model=CouponRead, status_code=status.HTTP_201_CREATED)
def create_coupon(
    body: CouponCreate,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return coupon_service.create_coupon(db, **body.model_dump())


@router.patch("/{coupon_id}", response_model=CouponRead)
def update_coupon(
    coupon_id: int,
    body: CouponUpdate,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    changes = body.model_dump(exclude_unset=True)
    if changes.get("code"):
        changes["code"] = changes["code"].strip().upper()
    return coupon_service.update_coupon(db, coupon_id, **changes)


@router.delete("/{coupon_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_coupon(
    coupon_id: int,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    coupon_service.delete_coupon(db, coupon_id)
