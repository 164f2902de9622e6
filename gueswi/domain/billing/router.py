"""Billing router - bank transfer endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from ...auth import get_tenant_user, require_admin
from ...database import get_db
from ...models import BankTransfer, User
from .schemas import BankTransferResponse, TransferDecision
from .service import BillingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Billing"])


def get_billing_service(db: Session = Depends(get_db)) -> BillingService:
    """Dependency injection for BillingService"""
    return BillingService(db)


def transfer_response(transfer: BankTransfer) -> BankTransferResponse:
    return BankTransferResponse(
        id=transfer.id,
        referenceNumber=transfer.reference_number,
        userId=transfer.user_id,
        tenantId=transfer.tenant_id,
        bank=transfer.bank,
        amount=transfer.amount,
        transferDate=transfer.transfer_date,
        transferTime=transfer.transfer_time,
        purpose=transfer.purpose,
        comments=transfer.comments,
        receiptUrl=transfer.receipt_url,
        status=transfer.status,
        adminComments=transfer.admin_comments,
        processedAt=transfer.processed_at,
        processedBy=transfer.processed_by,
        createdAt=transfer.created_at,
    )


@router.post("/bank-transfers", response_model=BankTransferResponse)
async def create_bank_transfer(
    referenceNumber: str = Form(...),
    bank: str = Form(...),
    amount: str = Form(...),
    transferDate: str = Form(...),
    transferTime: str = Form(...),
    purpose: str = Form(...),
    comments: Optional[str] = Form(None),
    receipt: Optional[UploadFile] = File(None),
    user: User = Depends(get_tenant_user),
    service: BillingService = Depends(get_billing_service),
):
    """Submit a bank transfer payment with an optional receipt"""
    transfer = await service.create_transfer(
        user,
        reference_number=referenceNumber,
        bank=bank,
        amount=amount,
        transfer_date=transferDate,
        transfer_time=transferTime,
        purpose=purpose,
        comments=comments,
        receipt=receipt,
    )
    return transfer_response(transfer)


@router.get("/bank-transfers", response_model=list[BankTransferResponse])
async def list_bank_transfers(
    user: User = Depends(get_tenant_user),
    service: BillingService = Depends(get_billing_service),
):
    return [transfer_response(t) for t in service.list_transfers(user)]


@router.patch("/bank-transfers/{transfer_id}", response_model=BankTransferResponse)
async def process_bank_transfer(
    transfer_id: str,
    data: TransferDecision,
    admin: User = Depends(require_admin),
    service: BillingService = Depends(get_billing_service),
):
    """Approve or reject a pending transfer (platform admins only)"""
    return transfer_response(service.process_transfer(admin, transfer_id, data))
