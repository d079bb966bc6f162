"""
Pydantic schemas for request/response validation and serialization.
Provides data validation and API documentation for the FastAPI endpoints.

Python attributes are snake_case; JSON on the wire is camelCase (the contract
the EcoWaste frontend consumes). Both spellings are accepted on input.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema: camelCase aliases, readable from ORM objects."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class Role(str, Enum):
    """Enumeration of account roles."""
    collector = "collector"
    employee = "employee"


class PaymentMethod(str, Enum):
    """Enumeration of supported payout methods."""
    upi = "upi"
    bank = "bank"


class Coordinates(CamelModel):
    """A WGS84 point in degrees."""
    lat: float = Field(..., ge=-90, le=90, description="Latitude coordinate")
    lng: float = Field(..., ge=-180, le=180, description="Longitude coordinate")


class MessageResponse(BaseModel):
    """Generic message response schema."""
    message: str
    data: Optional[dict] = None


# ============== Auth & User Schemas ==============

class SignupRequest(CamelModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    role: Optional[Role] = Field(None, description="Defaults to collector")


class LoginRequest(CamelModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    role: Optional[Role] = Field(None, description="Reject the login if the account has another role")


class Profile(CamelModel):
    phone: Optional[str] = None
    address: Optional[str] = None
    bio: Optional[str] = None
    sector: Optional[str] = None
    aadhaar_last4: Optional[str] = None
    photo_base64: Optional[str] = None


class NotificationSettings(CamelModel):
    email_notifications: Optional[bool] = None
    push_notifications: Optional[bool] = None
    sms_alerts: Optional[bool] = None
    weekly_reports: Optional[bool] = None
    achievement_alerts: Optional[bool] = None
    maintenance_updates: Optional[bool] = None

    class Config:
        extra = "allow"


class PrivacySettings(CamelModel):
    profile_visibility: Optional[str] = None
    location_sharing: Optional[bool] = None
    activity_tracking: Optional[bool] = None
    data_analytics: Optional[bool] = None

    class Config:
        extra = "allow"


class PreferenceSettings(CamelModel):
    language: Optional[str] = None
    theme: Optional[str] = None
    currency: Optional[str] = None
    timezone: Optional[str] = None

    class Config:
        extra = "allow"


class UserSettings(CamelModel):
    """
    Typed view of the settings bag. Each section sent replaces the stored
    section; unknown top-level keys are kept as-is.
    """
    notifications: Optional[NotificationSettings] = None
    privacy: Optional[PrivacySettings] = None
    preferences: Optional[PreferenceSettings] = None

    class Config:
        extra = "allow"

        json_schema_extra = {
            "example": {
                "notifications": {"emailNotifications": True, "smsAlerts": False},
                "preferences": {"language": "english", "theme": "system"},
            }
        }


class UserUpdate(CamelModel):
    name: Optional[str] = None
    profile: Optional[Profile] = None
    settings: Optional[UserSettings] = None


class UserResponse(CamelModel):
    id: int
    name: Optional[str] = None
    email: str
    role: str
    profile: Profile = Field(default_factory=Profile)
    settings: Dict[str, Any] = {}
    withdrawn_points: int = 0
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    last_active_at: Optional[datetime] = None
    current_streak: int = 0
    longest_streak: int = 0


class UserEnvelope(CamelModel):
    user: UserResponse


class AuthResponse(CamelModel):
    token: str
    user: UserResponse


class UserRef(CamelModel):
    id: int
    name: Optional[str] = None
    email: str


# ============== Rewards Schemas ==============

class WithdrawRequest(CamelModel):
    """Either amount_points or amount_rupees; the other is derived."""
    amount_points: float = 0
    amount_rupees: float = 0
    payment_method: PaymentMethod = PaymentMethod.upi
    payment_details: Dict[str, Any] = {}

    class Config:
        json_schema_extra = {
            "example": {
                "amountRupees": 1.0,
                "paymentMethod": "upi",
                "paymentDetails": {"upiId": "collector@upi"},
            }
        }


class Transaction(CamelModel):
    id: str
    type: str  # earned | withdrawn
    amount_points: int
    amount_rupees: float
    status: str
    description: str
    created_at: Optional[datetime] = None


class Conversion(CamelModel):
    points_per_rupee: float
    rupees_per_point: float


class RewardsSummary(CamelModel):
    """Schema for a user's balance snapshot."""
    lifetime_points: int
    lifetime_report_points: int
    lifetime_incident_points: int
    available_points: int
    available_rupees: float
    withdrawn_points: int
    withdrawn_rupees: float
    pending_reports: int
    conversion: Conversion
    transactions: List[Transaction] = []


class ReconcileResponse(CamelModel):
    email: str
    counter: int = Field(..., description="withdrawn_points stored on the user")
    ledger: int = Field(..., description="Sum of completed withdrawals")
    drift: int = Field(..., description="counter - ledger; 0 when consistent")


# ============== Report Schemas ==============

class ReportCreate(CamelModel):
    """Schema for submitting a waste-collection report."""
    pickup_image_base64: Optional[str] = None
    pickup_location: Optional[Coordinates] = None
    disposal_image_base64: Optional[str] = None
    disposal_location: Optional[Coordinates] = None
    dustbin_id: Optional[int] = None
    material_type: Optional[str] = None
    waste_weight_kg: Optional[float] = Field(None, ge=0)

    class Config:
        json_schema_extra = {
            "example": {
                "pickupImageBase64": "data:image/jpeg;base64,...",
                "pickupLocation": {"lat": 12.9721, "lng": 77.5950},
                "disposalImageBase64": "data:image/jpeg;base64,...",
                "disposalLocation": {"lat": 12.9716, "lng": 77.5946},
                "dustbinId": 1,
            }
        }


class ReportCreated(CamelModel):
    id: int
    points: int = 0


class ReportStatusUpdate(CamelModel):
    """Schema for an employee's review of a report."""
    status: Optional[str] = Field(None, description="approved or rejected")
    points: Optional[int] = None
    verification_comment: Optional[str] = None
    verified_by: Optional[str] = None


class NearestDustbin(CamelModel):
    id: Optional[int] = None
    name: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


class AiAnalysis(CamelModel):
    disposal_distance: Optional[float] = Field(None, description="Meters from disposal point to the dustbin")
    nearest_dustbin: Optional[NearestDustbin] = None


class ReportListItem(CamelModel):
    """Report without its images, for list views."""
    id: int
    pickup_location: Coordinates
    disposal_location: Coordinates
    dustbin_id: Optional[int] = None
    status: str
    collector_email: Optional[str] = None
    collector_id: Optional[int] = None
    points: int
    waste_weight_kg: float
    material_type: Optional[str] = None
    verification_comment: Optional[str] = None
    verified_by: Optional[str] = None
    submitted_at: datetime
    ai_analysis: Optional[AiAnalysis] = None


class ReportResponse(ReportListItem):
    pickup_image_base64: str
    disposal_image_base64: str


class ReportListResponse(CamelModel):
    reports: List[ReportListItem]
    total: int
    page: int
    limit: int
    total_pages: int


class LatestDisposalImage(CamelModel):
    disposal_image_base64: str
    submitted_at: datetime
    nearest_dustbin: Optional[NearestDustbin] = None


# ============== Dustbin Schemas ==============

class DustbinCreate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    sector: Optional[str] = None
    type: Optional[str] = None
    capacity_liters: Optional[float] = None
    coordinates: Optional[Coordinates] = None
    status: Optional[str] = None
    fill_level: Optional[float] = None
    last_emptied_at: Optional[datetime] = None
    photo_base64: Optional[str] = None
    verification_radius: Optional[float] = None


class DustbinUpdate(DustbinCreate):
    urgent: Optional[bool] = None


class DustbinPhotoResponse(CamelModel):
    photo: str
    updated_at: Optional[datetime] = None
    report_id: Optional[int] = None


class DustbinResponse(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    sector: Optional[str] = None
    type: Optional[str] = None
    capacity_liters: Optional[float] = None
    status: str
    fill_level: Optional[float] = None
    coordinates: Coordinates
    photo_base64: str
    initial_photo_base64: Optional[str] = None
    photo_history: List[DustbinPhotoResponse] = []
    verification_radius: Optional[float] = None
    last_emptied_at: Optional[datetime] = None
    urgent: bool = False
    created_by: Optional[int] = None
    updated_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ============== Incident Schemas ==============

class IncidentCreate(CamelModel):
    category: Optional[str] = None
    description: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    image_base64: Optional[str] = None
    urgency: Optional[str] = None


class IncidentUpdate(CamelModel):
    category: Optional[str] = None
    description: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    urgency: Optional[str] = None
    status: Optional[str] = None
    assigned_to_id: Optional[int] = Field(None, alias="assignedTo")
    notes: Optional[str] = None


class IncidentResponse(CamelModel):
    id: int
    category: str
    description: Optional[str] = ""
    coordinates: Coordinates
    image_base64: str
    urgency: str
    status: str
    rewarded: bool
    reporter_id: Optional[int] = Field(None, serialization_alias="reporter")
    assigned_to_id: Optional[int] = Field(None, serialization_alias="assignedTo")
    notes: Optional[str] = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class IncidentRewardRequest(CamelModel):
    points: Optional[float] = None
    note: Optional[str] = ""


class IncidentRewardResponse(CamelModel):
    id: int
    user_id: int
    incident_id: int
    points: int
    note: Optional[str] = ""
    created_at: Optional[datetime] = None


class RepairEstimate(CamelModel):
    incident_id: int
    category: str
    urgency: str
    estimated_cost: int
    currency: str = "INR"
    note: str


# ============== Complaint Schemas ==============

class ComplaintCreate(CamelModel):
    type: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    photo_base64: Optional[str] = None
    location: Optional[Coordinates] = None
    citizen_name: Optional[str] = None
    citizen_phone: Optional[str] = None
    priority: Optional[str] = None


class ComplaintUpdate(CamelModel):
    status: Optional[str] = None
    priority: Optional[str] = None
    assigned_to_id: Optional[int] = Field(None, alias="assignedTo")
    resolution_comment: Optional[str] = None


class ComplaintResponse(CamelModel):
    id: int
    type: str
    title: str
    description: str
    photo_base64: Optional[str] = None
    location: Coordinates
    citizen_name: str
    citizen_email: Optional[str] = None
    citizen_phone: Optional[str] = None
    created_by: Optional[int] = None
    status: str
    priority: str
    assigned_to: Optional[UserRef] = None
    resolution_comment: Optional[str] = None
    resolved_by: Optional[UserRef] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ============== Photo Schemas ==============

class PhotoResponse(CamelModel):
    id: int
    filename: Optional[str] = None
    content_type: Optional[str] = None
    image_base64: str
    uploaded_at: Optional[datetime] = None


# ============== Dashboard Schemas ==============

class SeriesPoint(CamelModel):
    month: str
    points: int
    reports: int


class CollectorSummary(CamelModel):
    lifetime_points: int
    available_points: int
    available_rupees: float
    withdrawn_points: int
    withdrawn_rupees: float
    pending_reports: int
    approved_reports: int
    rejected_reports: int


class MonthlyProgress(CamelModel):
    reports_this_month: int
    points_this_month: int
    monthly_goal_reports: int
    monthly_goal_points: int
    progress_percent: float


class RecentActivity(CamelModel):
    id: int
    status: str
    points: int
    submitted_at: Optional[datetime] = None
    verification_comment: str = ""


class IncidentBrief(CamelModel):
    id: int
    category: str
    status: str
    rewarded: bool
    updated_at: Optional[datetime] = None


class RewardBrief(CamelModel):
    id: int
    incident_id: int
    points: int
    note: Optional[str] = ""
    created_at: Optional[datetime] = None


class CollectorIncidents(CamelModel):
    recent: List[IncidentBrief] = []
    recent_rewards: List[RewardBrief] = []


class CollectorDashboard(CamelModel):
    """Schema for the collector home dashboard."""
    summary: CollectorSummary
    monthly_progress: MonthlyProgress
    recent_activity: List[RecentActivity] = []
    series: List[SeriesPoint] = []
    waste_collected_kg: float
    incidents: CollectorIncidents


class RecentReport(CamelModel):
    id: int
    status: str
    collector_email: Optional[str] = None
    points: int
    submitted_at: Optional[datetime] = None
    verification_comment: str = ""
    nearest_dustbin_name: Optional[str] = None
    disposal_distance: Optional[float] = None


class EmployeeReportStats(CamelModel):
    pending_count: int
    approved_today: int
    total_reports: int
    approved_total: int
    rejected_total: int
    recent_reports: List[RecentReport] = []
    monthly_series: List[SeriesPoint] = []


class ComplaintStats(CamelModel):
    pending: int
    urgent: int


class CollectorStat(CamelModel):
    email: Optional[str] = None
    total_reports: int
    total_points: int
    total_weight: float
    last_active: Optional[datetime] = None


class CollectorStats(CamelModel):
    active_collectors: int
    stats: List[CollectorStat] = []


class DustbinStats(CamelModel):
    total: int
    active: int
    full: int
    maintenance: int
    urgent: int
    average_fill: int


class EmployeeDashboard(CamelModel):
    """Schema for the employee review dashboard."""
    reports: EmployeeReportStats
    complaints: ComplaintStats
    collectors: CollectorStats
    dustbins: DustbinStats


class CommunityTotals(CamelModel):
    total_members: int
    active_today: int
    waste_collected_kg: float
    co2_saved_kg: float
    total_points: int


class LeaderboardEntry(CamelModel):
    id: Optional[int] = None
    name: Optional[str] = None
    email: str
    points: int
    current_streak: int = 0
    longest_streak: int = 0
    last_active_at: Optional[datetime] = None


class CommunityStats(CamelModel):
    stats: CommunityTotals
    leaderboard: List[LeaderboardEntry] = []
