"""
Identity records: social login, admin management and role changes.

Handles:
- Login with an external identity (lookup, linking, first-login creation)
- Admin grant/revoke with a last-admin guard
- Paginated user listing
"""
import logging
import uuid
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from edustream.core.config import settings
from edustream.core.errors import Conflict, LinkConflict, NotFound
from edustream.models import User
from edustream.schemas import ProviderProfile

logger = logging.getLogger(__name__)


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class AccountService:
    """Service for user identity records."""

    def get_user(self, user_id: str, db: Session) -> User:
        try:
            key = uuid.UUID(str(user_id))
        except ValueError:
            raise NotFound("User not found")

        user = db.query(User).filter(User.id == key).first()
        if not user:
            raise NotFound("User not found")
        return user

    def login_with_provider(self, profile: ProviderProfile, db: Session) -> User:
        """
        Find, link or create the user for an external identity.

        Lookup is by provider id first, then by email. A record found by email
        that has no provider id yet (an admin pre-provisioned by email) is
        linked to this identity. New users get the admin role when their
        email is in ADMIN_EMAILS, otherwise student.

        Raises:
            LinkConflict: the email belongs to a record linked to a different
                identity, or the link write hit a uniqueness violation
        """
        email = _normalize_email(profile.email)

        user = db.query(User).filter(User.google_id == profile.provider_id).first()
        if not user:
            user = db.query(User).filter(User.email == email).first()

        if user is None:
            admin_emails = {_normalize_email(e) for e in settings.admin_emails}
            role = "admin" if email in admin_emails else "student"
            user = User(
                google_id=profile.provider_id,
                email=email,
                name=profile.name or email.split("@")[0],
                avatar=profile.avatar,
                role=role,
            )
            db.add(user)
            logger.info(f"Creating user {email} with role {role}")
        elif user.google_id is None:
            user.google_id = profile.provider_id
            logger.info(f"Linking pre-provisioned user {user.email} to provider identity")
        elif user.google_id != profile.provider_id:
            logger.warning(f"Email {email} is already linked to another provider identity")
            raise LinkConflict()

        if profile.name:
            user.name = profile.name
        if profile.avatar:
            user.avatar = profile.avatar
        user.last_login_at = datetime.utcnow()

        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            logger.warning(f"Identity link conflict for {email}: {exc.orig}")
            raise LinkConflict() from exc

        db.refresh(user)
        return user

    def count_admins(self, db: Session) -> int:
        return db.query(func.count(User.id)).filter(User.role == "admin").scalar() or 0

    def list_admins(self, db: Session) -> List[User]:
        return db.query(User).filter(User.role == "admin").order_by(User.created_at.asc()).all()

    def list_users(
        self,
        db: Session,
        page: int = 1,
        limit: int = 20,
        role: Optional[str] = None,
    ) -> Tuple[List[User], int]:
        query = db.query(User)
        if role:
            query = query.filter(User.role == role)

        total = query.count()
        users = (
            query.order_by(User.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return users, total

    def grant_admin(self, email: str, db: Session) -> User:
        """
        Promote the user with this email to admin.

        Unknown emails are pre-provisioned as admin records without a provider
        id; the first social login with that email links them.
        """
        email = _normalize_email(email)
        user = db.query(User).filter(User.email == email).first()

        if user is None:
            user = User(email=email, name=email.split("@")[0], role="admin")
            db.add(user)
            logger.info(f"Pre-provisioned admin {email}")
        else:
            user.role = "admin"
            logger.info(f"Granted admin to {email}")

        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise Conflict("User with this email already exists") from exc

        db.refresh(user)
        return user

    def revoke_admin(self, user_id: str, db: Session) -> User:
        """
        Demote an admin to student.

        The last-admin check reads a live count; two concurrent revokes can
        both pass it.
        """
        user = self.get_user(user_id, db)
        if user.role != "admin":
            raise Conflict("User is not an admin")

        if self.count_admins(db) <= 1:
            raise Conflict("Cannot remove the last admin")

        user.role = "student"
        db.commit()
        db.refresh(user)
        logger.info(f"Revoked admin from {user.email}")
        return user

    def set_role(self, user_id: str, role: str, db: Session) -> User:
        user = self.get_user(user_id, db)

        if user.role == "admin" and role != "admin" and self.count_admins(db) <= 1:
            raise Conflict("Cannot remove the last admin")

        user.role = role
        db.commit()
        db.refresh(user)
        logger.info(f"Role of {user.email} set to {role}")
        return user


# Global service instance
account_service = AccountService()
