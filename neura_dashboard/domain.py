"""Backend payload schemas for the insights dashboard.

These models mirror what the insights backend returns. They are read-only
views of backend state: the gateway never computes scores or runway figures
itself, it only caches, patches (optimistically) and re-serves them. Unknown
fields are ignored so a newer backend does not break older gateways.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class _BackendModel(BaseModel):
    """Base model that tolerates additional backend fields."""

    model_config = ConfigDict(extra="ignore")


class SyncStatus(str, Enum):
    """Lifecycle of the backend's sync/insight-generation job."""
    IDLE = "IDLE"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class SyncStep(str, Enum):
    """Step reported while a sync is in progress."""
    CONNECTING = "CONNECTING"
    IMPORTING = "IMPORTING"
    CALCULATING = "CALCULATING"
    GENERATING_INSIGHTS = "GENERATING_INSIGHTS"
    COMPLETED = "COMPLETED"


def to_epoch_ms(value: datetime) -> int:
    """Convert a datetime to UTC epoch milliseconds (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


class SyncStatusSnapshot(_BackendModel):
    """Point-in-time read of the backend job status row."""
    sync_status: SyncStatus
    sync_step: Optional[SyncStep] = None
    last_sync_error: Optional[str] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def optimistic(cls) -> "SyncStatusSnapshot":
        """State shown before the first status response arrives."""
        return cls(
            sync_status=SyncStatus.IN_PROGRESS,
            sync_step=SyncStep.CONNECTING,
            updated_at=datetime.now(timezone.utc),
        )

    def updated_at_ms(self) -> Optional[int]:
        return to_epoch_ms(self.updated_at) if self.updated_at else None


class SupportingNumber(_BackendModel):
    label: str
    value: str | float | int


class Insight(_BackendModel):
    """A single prioritized insight generated by the backend."""
    insight_id: str
    insight_type: str
    title: str
    severity: str
    confidence_level: str
    summary: str
    why_it_matters: str
    recommended_actions: List[str] = Field(default_factory=list)
    supporting_numbers: List[SupportingNumber] = Field(default_factory=list)
    data_notes: Optional[str] = None
    generated_at: datetime
    is_acknowledged: bool = False
    is_marked_done: bool = False


class Pagination(_BackendModel):
    total: int = 0
    page: int = 1
    limit: int = 20
    total_pages: int = 0


class InsightsPage(_BackendModel):
    """Paginated ``GET /api/insights/`` response."""
    insights: List[Insight] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)
    calculated_at: Optional[datetime] = None


class CashRunwayMetrics(_BackendModel):
    current_cash: float
    monthly_burn_rate: float
    runway_months: Optional[float] = None
    status: str
    confidence_level: Optional[str] = None


class CashPressureMetrics(_BackendModel):
    status: str
    confidence: str


class ProfitabilityMetrics(_BackendModel):
    revenue: Optional[float] = None
    gross_margin_pct: Optional[float] = None
    net_profit: Optional[float] = None
    risk_level: str


class UpcomingBill(_BackendModel):
    label: str
    amount: float
    due_date: str


class UpcomingCommitmentsMetrics(_BackendModel):
    upcoming_amount: float
    upcoming_count: int
    days_ahead: int
    large_upcoming_bills: List[UpcomingBill] = Field(default_factory=list)
    squeeze_risk: str


class OverviewData(_BackendModel):
    """Overview page payload: headline metrics plus the current insights."""
    cash_runway: Optional[CashRunwayMetrics] = None
    cash_pressure: Optional[CashPressureMetrics] = None
    profitability: Optional[ProfitabilityMetrics] = None
    upcoming_commitments: Optional[UpcomingCommitmentsMetrics] = None
    insights: List[Insight] = Field(default_factory=list)
    calculated_at: Optional[datetime] = None


class Scorecard(_BackendModel):
    raw_score: float
    confidence: Literal["high", "medium", "low"]
    confidence_cap: float
    final_score: float
    grade: Literal["A", "B", "C", "D"]


class CategoryScore(_BackendModel):
    category_id: str
    name: str
    max_points: float
    points_awarded: float
    metrics: List[str] = Field(default_factory=list)


class SubScore(_BackendModel):
    metric_id: str
    name: str
    max_points: float
    points_awarded: float
    status: Literal["ok", "missing", "estimated"]
    value: Optional[float] = None
    formula: str
    inputs_used: List[str] = Field(default_factory=list)


class Driver(_BackendModel):
    metric_id: str
    label: str
    impact_points: float
    why_it_matters: str
    recommended_action: str


class Drivers(_BackendModel):
    top_positive: List[Driver] = Field(default_factory=list)
    top_negative: List[Driver] = Field(default_factory=list)


class DataQualitySignal(_BackendModel):
    signal_id: str
    severity: Literal["info", "warning", "critical"]
    message: str


class DataQuality(_BackendModel):
    signals: List[DataQualitySignal] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class HealthScoreData(_BackendModel):
    """Health score breakdown; computed server-side and only displayed here."""
    schema_version: str
    generated_at: datetime
    scorecard: Scorecard
    category_scores: Dict[str, CategoryScore] = Field(default_factory=dict)
    subscores: Dict[str, SubScore] = Field(default_factory=dict)
    drivers: Drivers = Field(default_factory=Drivers)
    data_quality: DataQuality = Field(default_factory=DataQuality)
    business: Optional[Dict[str, Any]] = None
    periods: Optional[Dict[str, Any]] = None


class XeroIntegration(_BackendModel):
    is_connected: bool = False
    status: str = "disconnected"
    connected_at: Optional[datetime] = None
    last_synced_at: Optional[datetime] = None
    needs_reconnect: bool = False
    xero_org_name: Optional[str] = None


class SettingsData(_BackendModel):
    """Organisation and integration settings (``GET /settings/``)."""
    email: str
    organization_name: str
    xero_integration: XeroIntegration = Field(default_factory=XeroIntegration)
    last_sync_time: Optional[datetime] = None
    support_link: Optional[str] = None


class AIProviderConfig(_BackendModel):
    active_provider: str
    validation_status: str
    last_tested_at: Optional[datetime] = None
    available_providers: List[str] = Field(default_factory=list)
    has_key_configured: bool = False
    temperature: float = 0.2
    top_p: float = 0.9
    model: Optional[str] = None


class TestConnectionResponse(_BackendModel):
    __test__ = False  # not a pytest test class

    success: bool
    message: Optional[str] = None
    latency_ms: Optional[float] = None


class XeroConnectResponse(_BackendModel):
    authorization_url: str
    state: str


class InsightFeedback(_BackendModel):
    """Body of ``POST /api/feedback/``."""
    insight_id: str
    insight_type: str
    insight_title: str
    is_helpful: bool
    comment: Optional[str] = None


class OrganizationSummary(_BackendModel):
    id: str
    name: str
    user_email: str
    created_at: datetime
    sync_status: SyncStatus
    sync_step: Optional[str] = None
    last_sync_error: Optional[str] = None
    has_xero_connection: bool = False
    last_sync_at: Optional[datetime] = None


class AdminDashboardStats(_BackendModel):
    total_organizations: int = 0
    active_xero_connections: int = 0
    syncs_in_progress: int = 0
    failed_syncs: int = 0


class AdminDashboardData(_BackendModel):
    stats: AdminDashboardStats = Field(default_factory=AdminDashboardStats)
    organizations: List[OrganizationSummary] = Field(default_factory=list)


class FeedbackItem(_BackendModel):
    id: str
    insight_id: str
    insight_type: str
    insight_title: str
    is_helpful: bool
    comment: Optional[str] = None
    user_id: str
    organization_id: str
    created_at: datetime


class FeedbackComment(_BackendModel):
    comment: str
    is_helpful: bool
    created_at: datetime


class FeedbackSummaryItem(_BackendModel):
    insight_type: str
    insight_title: str
    total_feedback: int
    helpful_count: int
    not_helpful_count: int
    helpful_percentage: float
    comments: List[FeedbackComment] = Field(default_factory=list)


class OverallFeedbackStats(_BackendModel):
    total_feedback: int = 0
    helpful_count: int = 0
    not_helpful_count: int = 0
    helpful_percentage: float = 0.0


class FeedbackSummaryData(_BackendModel):
    summary: List[FeedbackSummaryItem] = Field(default_factory=list)
    overall_stats: OverallFeedbackStats = Field(default_factory=OverallFeedbackStats)


class FeedbackList(_BackendModel):
    total: int = 0
    feedback: List[FeedbackItem] = Field(default_factory=list)


class AppUser(_BackendModel):
    """The backend's view of the signed-in user, including their role."""
    id: str
    email: str
    role: str = "user"
    organization_id: Optional[str] = None
    organization_name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class AuthSession(_BackendModel):
    """Tokens held for one gateway session."""
    access_token: str
    refresh_token: str
    user_id: Optional[str] = None
    email: Optional[str] = None
