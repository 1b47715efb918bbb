"""
Admin endpoints of the auth service: admin grants and user roles.

All endpoints require the admin role.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from edustream.api.deps import require_admin
from edustream.db.base import get_db
from edustream.schemas import (
    AdminGrantRequest,
    Pagination,
    Principal,
    RoleUpdateRequest,
    UserList,
    UserOut,
)
from edustream.schemas.user import Role
from edustream.services.accounts import account_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/admins", response_model=List[UserOut])
async def list_admins(
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return account_service.list_admins(db)


@router.post("/admins", response_model=UserOut)
async def grant_admin(
    payload: AdminGrantRequest,
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Grant admin to a user by email.

    Unknown emails are pre-provisioned; the first Google login with that
    email links to the record.
    """
    user = account_service.grant_admin(payload.email, db)
    logger.info(f"Admin {admin.user_id} granted admin to {user.email}")
    return user


@router.delete("/admins/{user_id}", response_model=UserOut)
async def revoke_admin(
    user_id: str,
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Demote an admin to student. The last admin cannot be removed."""
    user = account_service.revoke_admin(user_id, db)
    logger.info(f"Admin {admin.user_id} revoked admin from {user.email}")
    return user


@router.get("/users", response_model=UserList)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    role: Optional[Role] = None,
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    users, total = account_service.list_users(db, page=page, limit=limit, role=role)
    return UserList(
        users=[UserOut.model_validate(u) for u in users],
        pagination=Pagination.build(page, limit, total),
    )


@router.patch("/users/{user_id}/role", response_model=UserOut)
async def update_role(
    user_id: str,
    payload: RoleUpdateRequest,
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = account_service.set_role(user_id, payload.role, db)
    logger.info(f"Admin {admin.user_id} set role of {user.email} to {payload.role}")
    return user
