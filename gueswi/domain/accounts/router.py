"""Account router - session, signup, onboarding and workspace endpoints"""

import logging

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...auth import (
    clear_session_cookie,
    get_tenant_user,
    require_owner,
    set_session_cookie,
)
from ...database import get_db
from ...models import Tenant, User
from ...rate_limiter import create_rate_limiter
from .schemas import (
    LoginRequest,
    OnboardingRequest,
    OnboardingResponse,
    RegisterRequest,
    TenantResponse,
    UserResponse,
    WhoAmIResponse,
)
from .service import AccountService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Accounts"])

login_rate_limit = create_rate_limiter(limit=10, window_seconds=60, key_prefix="login")
register_rate_limit = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="register")


def get_account_service(db: Session = Depends(get_db)) -> AccountService:
    """Dependency injection for AccountService"""
    return AccountService(db)


def user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        firstName=user.first_name,
        lastName=user.last_name,
        phone=user.phone,
        role=user.role,
        tenantId=user.tenant_id,
        createdAt=user.created_at,
    )


def tenant_response(tenant: Tenant) -> TenantResponse:
    return TenantResponse(
        id=tenant.id,
        name=tenant.name,
        industry=tenant.industry,
        employeeCount=tenant.employee_count,
        estimatedExtensions=tenant.estimated_extensions,
        plan=tenant.plan,
        status=tenant.status,
        createdAt=tenant.created_at,
    )


# ============================================================================
# SESSION
# ============================================================================


@router.post("/register", response_model=UserResponse, status_code=201)
async def register(
    data: RegisterRequest,
    response: Response,
    service: AccountService = Depends(get_account_service),
    _: None = Depends(register_rate_limit),
):
    """Create an account and log it in"""
    user = service.register(data)
    set_session_cookie(response, user.id)
    return user_response(user)


@router.post("/login")
async def login(
    data: LoginRequest,
    service: AccountService = Depends(get_account_service),
    _: None = Depends(login_rate_limit),
):
    user, reason = service.authenticate(data.email, data.password)
    if not user:
        return JSONResponse(status_code=401, content={"ok": False, "reason": reason})

    response = JSONResponse(content={"ok": True})
    set_session_cookie(response, user.id)
    logger.info(f"✅ User logged in: {user.email}")
    return response


@router.post("/logout")
async def logout(response: Response):
    clear_session_cookie(response)
    return {"ok": True}


@router.get("/user", response_model=UserResponse)
async def get_user(user: User = Depends(get_tenant_user)):
    return user_response(user)


@router.get("/whoami", response_model=WhoAmIResponse)
async def whoami(user: User = Depends(get_tenant_user)):
    """Current session info for the frontend shell"""
    return WhoAmIResponse(id=user.id, email=user.email, role=user.role, tenantId=user.tenant_id)


# ============================================================================
# WORKSPACE
# ============================================================================


@router.post("/complete-onboarding", response_model=OnboardingResponse)
async def complete_onboarding(
    data: OnboardingRequest,
    user: User = Depends(get_tenant_user),
    service: AccountService = Depends(get_account_service),
):
    tenant = service.complete_onboarding(data, user)
    return OnboardingResponse(success=True, tenant=tenant_response(tenant))


@router.post("/dev/seed/reset")
async def reset_seed(
    user: User = Depends(require_owner),
    service: AccountService = Depends(get_account_service),
):
    """Restore the demo telephony data of the caller's tenant"""
    return service.reset_seed(user)


@router.get("/system/mode")
async def system_mode():
    return AccountService.system_mode()
