"""Billing schemas - bank transfer payments"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, field_validator

TRANSFER_DECISIONS = ("approved", "rejected")


class TransferDecision(BaseModel):
    status: str
    adminComments: Optional[str] = None

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        if v not in TRANSFER_DECISIONS:
            raise ValueError("Status must be approved or rejected")
        return v


class BankTransferResponse(BaseModel):
    id: str
    referenceNumber: str
    userId: str
    tenantId: str
    bank: str
    amount: Decimal
    transferDate: datetime
    transferTime: str
    purpose: str
    comments: Optional[str] = None
    receiptUrl: Optional[str] = None
    status: str
    adminComments: Optional[str] = None
    processedAt: Optional[datetime] = None
    processedBy: Optional[str] = None
    createdAt: Optional[datetime] = None
