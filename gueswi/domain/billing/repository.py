"""Billing repository - Database operations for bank transfers"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import BankTransfer, Tenant


class BillingRepository:
    """Repository for bank transfer operations"""

    @staticmethod
    def create_transfer(db: Session, **data) -> BankTransfer:
        transfer = BankTransfer(**data)
        db.add(transfer)
        db.commit()
        db.refresh(transfer)
        return transfer

    @staticmethod
    def get_transfer(db: Session, transfer_id: str) -> Optional[BankTransfer]:
        return db.query(BankTransfer).filter(BankTransfer.id == transfer_id).first()

    @staticmethod
    def list_pending(db: Session) -> list[BankTransfer]:
        return (
            db.query(BankTransfer)
            .filter(BankTransfer.status == "pending")
            .order_by(BankTransfer.created_at.desc())
            .all()
        )

    @staticmethod
    def list_for_tenant(db: Session, tenant_id: str) -> list[BankTransfer]:
        return (
            db.query(BankTransfer)
            .filter(BankTransfer.tenant_id == tenant_id)
            .order_by(BankTransfer.created_at.desc())
            .all()
        )

    @staticmethod
    def get_tenant(db: Session, tenant_id: str) -> Optional[Tenant]:
        return db.query(Tenant).filter(Tenant.id == tenant_id).first()
