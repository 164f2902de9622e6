"""Billing service - bank transfer submission and admin review"""

import logging
import os
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from fastapi import HTTPException, UploadFile
from sqlalchemy.orm import Session

from ... import config
from ...models import BankTransfer, User, utc_now
from ...security_utils import sanitize_filename
from ...shared.validators import validate_hhmm
from ...utils.sanitization import validate_and_sanitize_input
from .repository import BillingRepository
from .schemas import TransferDecision

logger = logging.getLogger(__name__)

RECEIPTS_SUBDIR = "receipts"


def parse_amount(raw: str) -> Decimal:
    try:
        amount = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError) as e:
        raise HTTPException(status_code=400, detail="Invalid amount") from e
    if not amount.is_finite() or amount <= 0:
        raise HTTPException(status_code=400, detail="Amount must be greater than 0")
    return amount.quantize(Decimal("0.01"))


def parse_transfer_moment(transfer_date: str, transfer_time: str) -> datetime:
    """Combine YYYY-MM-DD and HH:MM into one timestamp"""
    try:
        validate_hhmm(transfer_time.strip())
        return datetime.strptime(f"{transfer_date.strip()} {transfer_time.strip()}", "%Y-%m-%d %H:%M")
    except ValueError as e:
        raise HTTPException(status_code=400, detail="Invalid transfer date or time") from e


class BillingService:
    """Service layer for bank transfer payments"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BillingRepository()

    async def store_receipt(self, receipt: UploadFile) -> str:
        """Validate and save a receipt; returns its /uploads URL"""
        content_type = (receipt.content_type or "").lower()
        if content_type not in config.ALLOWED_RECEIPT_TYPES:
            raise HTTPException(
                status_code=400,
                detail="Invalid file type. Only JPEG, PNG, and PDF files are allowed.",
            )

        contents = await receipt.read()
        if len(contents) > config.MAX_RECEIPT_SIZE:
            raise HTTPException(status_code=400, detail="File too large. Maximum size is 5MB.")
        if not contents:
            raise HTTPException(status_code=400, detail="Empty file")

        safe_name = sanitize_filename(receipt.filename or "receipt")
        filename = f"{uuid.uuid4().hex}_{safe_name}"
        receipts_dir = os.path.join(config.UPLOADS_DIR, RECEIPTS_SUBDIR)
        os.makedirs(receipts_dir, exist_ok=True)
        with open(os.path.join(receipts_dir, filename), "wb") as f:
            f.write(contents)

        logger.info(f"✅ Stored receipt {filename} ({len(contents)} bytes)")
        return f"/uploads/{RECEIPTS_SUBDIR}/{filename}"

    async def create_transfer(
        self,
        user: User,
        reference_number: str,
        bank: str,
        amount: str,
        transfer_date: str,
        transfer_time: str,
        purpose: str,
        comments: Optional[str],
        receipt: Optional[UploadFile],
    ) -> BankTransfer:
        for label, value in (("referenceNumber", reference_number), ("bank", bank), ("purpose", purpose)):
            if not value or not value.strip():
                raise HTTPException(status_code=400, detail=f"{label} is required")

        parsed_amount = parse_amount(amount)
        moment = parse_transfer_moment(transfer_date, transfer_time)
        try:
            clean_comments = validate_and_sanitize_input(comments)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        receipt_url = None
        if receipt is not None and receipt.filename:
            receipt_url = await self.store_receipt(receipt)

        transfer = self.repo.create_transfer(
            self.db,
            reference_number=reference_number.strip(),
            user_id=user.id,
            tenant_id=user.tenant_id,
            bank=bank.strip(),
            amount=parsed_amount,
            transfer_date=moment,
            transfer_time=transfer_time.strip(),
            purpose=purpose.strip(),
            comments=clean_comments,
            receipt_url=receipt_url,
            status="pending",
        )
        logger.info(f"💳 Bank transfer {transfer.reference_number} submitted by {user.email}")
        return transfer

    def list_transfers(self, user: User) -> list[BankTransfer]:
        """Platform admins review every pending transfer; others see their tenant's"""
        if user.role == "admin":
            return self.repo.list_pending(self.db)
        return self.repo.list_for_tenant(self.db, user.tenant_id)

    def process_transfer(self, admin: User, transfer_id: str, data: TransferDecision) -> BankTransfer:
        transfer = self.repo.get_transfer(self.db, transfer_id)
        if not transfer:
            raise HTTPException(status_code=404, detail="Transfer not found")
        if transfer.status != "pending":
            raise HTTPException(status_code=409, detail=f"Transfer already {transfer.status}")

        transfer.status = data.status
        transfer.admin_comments = data.adminComments
        transfer.processed_at = utc_now()
        transfer.processed_by = admin.id

        if data.status == "approved":
            tenant = self.repo.get_tenant(self.db, transfer.tenant_id)
            if tenant:
                tenant.status = "active"
                logger.info(f"✅ Tenant {tenant.id} activated by bank transfer {transfer.id}")

        self.db.commit()
        self.db.refresh(transfer)
        logger.info(f"✅ Transfer {transfer.id} {data.status} by {admin.email}")
        return transfer
