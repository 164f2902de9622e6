"""Account repository - Database operations for users and tenants"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Tenant, User


class AccountRepository:
    """Repository for user and tenant database operations"""

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email).first()

    @staticmethod
    def get_user_by_username(db: Session, username: str) -> Optional[User]:
        return db.query(User).filter(User.username == username).first()

    @staticmethod
    def create_user(db: Session, **user_data) -> User:
        user = User(**user_data)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def create_tenant(db: Session, **tenant_data) -> Tenant:
        """Create a tenant (flushed, not committed)"""
        tenant = Tenant(**tenant_data)
        db.add(tenant)
        db.flush()
        return tenant
