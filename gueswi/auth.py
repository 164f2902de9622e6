import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from .config import IS_PRODUCTION, SESSION_COOKIE_NAME, SESSION_MAX_AGE
from .database import get_db
from .domain.accounts.seed import seed_demo_data
from .models import Tenant, User
from .security_utils import create_session_token, read_session_token

logger = logging.getLogger(__name__)


def set_session_cookie(response: Response, user_id: str) -> None:
    """Log the user in by issuing a signed session cookie"""
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=create_session_token(user_id),
        httponly=True,
        secure=IS_PRODUCTION,
        samesite="lax",
        max_age=SESSION_MAX_AGE,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=SESSION_COOKIE_NAME, path="/")


def get_user_from_session(db: Session, token: Optional[str]) -> Optional[User]:
    """Resolve a session cookie value to its user (None when invalid)"""
    user_id = read_session_token(token)
    if not user_id:
        return None
    return db.query(User).filter(User.id == user_id).first()


async def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Get current user from the session cookie"""
    user = get_user_from_session(db, request.cookies.get(SESSION_COOKIE_NAME))
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def bootstrap_tenant(db: Session, user: User) -> User:
    """
    Give a tenant-less user their own workspace.

    The user becomes owner of a new active starter tenant seeded with demo
    telephony data. Users that already belong to a tenant are returned as-is.
    """
    if user.tenant_id:
        return user

    prefix = user.email.split("@")[0]
    logger.info(f"🚀 Bootstrapping tenant for {user.email}")

    try:
        tenant = Tenant(
            name=f"{prefix}-tenant",
            industry="Virtual PBX Demo",
            employee_count="10",
            estimated_extensions=8,
            plan="starter",
            status="active",
        )
        db.add(tenant)
        db.flush()

        user.tenant_id = tenant.id
        if user.role != "admin":
            user.role = "owner"
        seed_demo_data(db, tenant.id)

        db.commit()
        db.refresh(user)
        logger.info(f"✅ Tenant {tenant.id} bootstrapped for {user.email}")
        return user
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Tenant bootstrap failed for {user.email}: {e}")
        raise HTTPException(
            status_code=500,
            detail={"code": "BOOTSTRAP_FAILED", "message": "Failed to create tenant workspace"},
        ) from e


async def get_tenant_user(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> User:
    """
    Authenticated user guaranteed to belong to a tenant.
    Use this dependency for every tenant-scoped route.
    """
    return bootstrap_tenant(db, user)


async def require_owner(user: User = Depends(get_tenant_user)) -> User:
    if user.role != "owner":
        logger.warning(f"⚠️ User {user.email} attempted an owner-only action")
        raise HTTPException(
            status_code=403,
            detail={"code": "FORBIDDEN", "message": "Owner role required"},
        )
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Platform administrators (bank transfer review)"""
    if user.role != "admin":
        logger.warning(f"⚠️ User {user.email} attempted an admin-only action")
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
