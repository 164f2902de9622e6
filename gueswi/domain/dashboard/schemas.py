"""Dashboard schemas - tenant counters, consumption and metrics"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class DashboardStats(BaseModel):
    activeCalls: int
    aiMinutes: int
    extensions: int
    monthlyCost: float


class DashboardActivity(BaseModel):
    incomingCalls: int
    waitingCalls: int
    recordingsToday: int
    satisfactionScore: float


class CallRecordResponse(BaseModel):
    id: str
    tenantId: str
    extensionId: Optional[str] = None
    duration: int
    callType: str
    aiProcessed: bool
    aiDuration: int
    cost: Decimal
    createdAt: Optional[datetime] = None


class AiMetricResponse(BaseModel):
    id: str
    tenantId: str
    date: datetime
    totalSeconds: int
    totalCalls: int
    totalCost: Decimal
    language: Optional[str] = None
    successRate: Decimal


class ConsumptionResponse(BaseModel):
    voiceMinutes: list[CallRecordResponse]
    aiMinutes: list[AiMetricResponse]


class AiMetricsSummary(BaseModel):
    totalSeconds: int
    totalCalls: int
    totalCost: float
    successRate: float
    language: str
    # {"from": datetime, "to": datetime}
    period: dict[str, datetime]


class CallSummary(BaseModel):
    total: int
    incoming: int
    outgoing: int
    internal: int
    totalDuration: int
    avgDuration: float
    totalCost: float


class AdvancedMetrics(BaseModel):
    stats: DashboardStats
    activity: DashboardActivity
    calls: CallSummary
    ai: AiMetricsSummary
