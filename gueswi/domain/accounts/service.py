"""Account service - signup, login, onboarding and system mode"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import config
from ...models import Tenant, User
from ...security_utils import hash_password, verify_password
from .repository import AccountRepository
from .schemas import OnboardingRequest, RegisterRequest
from .seed import reset_demo_data

logger = logging.getLogger(__name__)


class AccountService:
    """Service layer for account business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AccountRepository()

    def register(self, data: RegisterRequest) -> User:
        """Create a user account with role user"""
        if self.repo.get_user_by_email(self.db, data.email):
            logger.warning(f"⚠️ Signup with existing email {data.email}")
            raise HTTPException(status_code=400, detail="Email already exists")

        username = data.username or data.email.split("@")[0]
        if self.repo.get_user_by_username(self.db, username):
            raise HTTPException(status_code=400, detail="Username already exists")

        user = self.repo.create_user(
            self.db,
            username=username,
            email=data.email,
            password=hash_password(data.password),
            first_name=data.firstName,
            last_name=data.lastName,
            phone=data.phone,
            role="user",
        )
        logger.info(f"✅ New user registered: {user.email}")
        return user

    def authenticate(self, email: str, password: str) -> tuple[User | None, str | None]:
        """
        Check credentials.

        Returns:
            (user, None) on success, (None, reason) otherwise
        """
        user = self.repo.get_user_by_email(self.db, email.strip().lower())
        if not user:
            logger.info(f"🔍 Login for unknown email {email}")
            return None, "User not found"
        if not verify_password(password, user.password):
            logger.warning(f"⚠️ Invalid password for {email}")
            return None, "Invalid password"
        return user, None

    def complete_onboarding(self, data: OnboardingRequest, user: User) -> Tenant:
        """Create the customer's real tenant; it stays inactive until payment"""
        try:
            tenant = self.repo.create_tenant(
                self.db,
                name=data.tenantData.name,
                industry=data.tenantData.industry,
                employee_count=data.tenantData.employeeCount,
                estimated_extensions=data.tenantData.estimatedExtensions,
                plan=data.selectedPlan,
                status="inactive",
            )
            user.tenant_id = tenant.id
            if user.role != "admin":
                user.role = "owner"
            self.db.commit()
            self.db.refresh(tenant)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Onboarding failed for {user.email}: {e}")
            raise HTTPException(status_code=400, detail=str(e)) from e

        logger.info(f"✅ Onboarding completed: tenant {tenant.id} ({tenant.plan}) for {user.email}")
        return tenant

    def reset_seed(self, user: User) -> dict:
        reset_demo_data(self.db, user.tenant_id)
        return {"success": True, "message": "Demo data reset successfully"}

    @staticmethod
    def system_mode() -> dict:
        """Payment mode banner data, straight from configuration"""
        is_test_mode = config.STRIPE_MODE == "test" or config.PAYPAL_MODE == "sandbox"
        base_url = config.PUBLIC_BASE_URL.rstrip("/")
        return {
            "stripeMode": config.STRIPE_MODE,
            "paypalMode": config.PAYPAL_MODE,
            "isTestMode": is_test_mode,
            "environment": config.ENVIRONMENT,
            "webhooks": {
                "stripe": f"{base_url}/api/webhooks/stripe",
                "paypal": f"{base_url}/api/webhooks/paypal",
            },
        }
