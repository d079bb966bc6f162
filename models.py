"""
SQLAlchemy ORM models for the EcoWaste backend.
Defines the database schema for users, waste-collection reports, dustbins,
incidents and the two append-only ledgers (incident rewards and withdrawals).
"""

from datetime import datetime
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from database import Base

# Largest value the Integer point columns can hold
POINTS_MAX = 2**31 - 1


class User(Base):
    """
    A collector or government employee.
    Anchors the balance: withdrawn_points only ever grows, and only through a withdrawal.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default="collector", index=True)  # collector, employee

    # Profile
    phone = Column(String, nullable=True)
    address = Column(String, nullable=True)
    bio = Column(Text, nullable=True)
    sector = Column(String, nullable=True)
    aadhaar_last4 = Column(String, nullable=True)
    photo_base64 = Column(Text, nullable=True)

    # Free-form preferences (notifications, privacy, preferences, ...)
    settings = Column(JSON, nullable=False, default=dict)

    withdrawn_points = Column(Integer, nullable=False, default=0)
    token_version = Column(Integer, nullable=False, default=0)
    current_streak = Column(Integer, nullable=False, default=0)
    longest_streak = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    last_login_at = Column(DateTime, nullable=True, index=True)
    last_active_at = Column(DateTime, nullable=True, index=True)

    incident_rewards = relationship("IncidentReward", back_populates="user")

    __table_args__ = (
        CheckConstraint("withdrawn_points >= 0", name="check_non_negative_withdrawn_points"),
    )

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"


class Dustbin(Base):
    """
    A physical collection point. The current photo is replaced on every approved
    disposal and the previous one moves into a bounded history.
    """
    __tablename__ = "dustbins"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    sector = Column(String, nullable=True, index=True)
    type = Column(String, default="mixed")
    capacity_liters = Column(Float, default=0)
    status = Column(String, default="active", index=True)  # active, inactive, maintenance, full
    fill_level = Column(Float, default=0)  # 0-100
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    photo_base64 = Column(Text, nullable=False)
    initial_photo_base64 = Column(Text, nullable=True)
    verification_radius = Column(Float, default=1.0)  # meters
    last_emptied_at = Column(DateTime, nullable=True)
    urgent = Column(Boolean, default=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, index=True)

    # Oldest first
    photo_history = relationship(
        "DustbinPhoto",
        back_populates="dustbin",
        order_by="DustbinPhoto.id",
        cascade="all, delete-orphan",
    )

    @property
    def coordinates(self):
        return {"lat": self.lat, "lng": self.lng}

    def __repr__(self):
        return f"<Dustbin(id={self.id}, name={self.name}, status={self.status})>"


class DustbinPhoto(Base):
    """A previous photo of a dustbin, archived when a disposal report was approved."""
    __tablename__ = "dustbin_photos"

    id = Column(Integer, primary_key=True, index=True)
    dustbin_id = Column(Integer, ForeignKey("dustbins.id"), nullable=False, index=True)
    photo = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow)
    report_id = Column(Integer, ForeignKey("reports.id"), nullable=True)

    dustbin = relationship("Dustbin", back_populates="photo_history")


class Report(Base):
    """
    One waste-collection submission (pickup photo + disposal photo).
    points only count toward a balance while status == "approved".
    """
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, index=True)
    pickup_image_base64 = Column(Text, nullable=False)
    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    disposal_image_base64 = Column(Text, nullable=False)
    disposal_lat = Column(Float, nullable=False)
    disposal_lng = Column(Float, nullable=False)
    dustbin_id = Column(Integer, ForeignKey("dustbins.id"), nullable=True, index=True)
    status = Column(String, nullable=False, default="pending", index=True)  # pending, approved, rejected
    collector_email = Column(String, nullable=True, index=True)
    collector_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    points = Column(Integer, nullable=False, default=0)
    waste_weight_kg = Column(Float, nullable=False, default=0)
    material_type = Column(String, nullable=True)
    verification_comment = Column(Text, nullable=True)
    verified_by = Column(String, nullable=True)
    submitted_at = Column(DateTime, default=datetime.utcnow, index=True)

    # Snapshot of the linked dustbin taken at submission time
    disposal_distance = Column(Float, nullable=True)  # meters
    nearest_dustbin_id = Column(Integer, nullable=True)
    nearest_dustbin_name = Column(String, nullable=True)
    nearest_dustbin_lat = Column(Float, nullable=True)
    nearest_dustbin_lng = Column(Float, nullable=True)

    dustbin = relationship("Dustbin")

    __table_args__ = (
        Index("idx_reports_collector_status", "collector_email", "status"),
        Index("idx_reports_status_submitted", "status", "submitted_at"),
    )

    @property
    def pickup_location(self):
        return {"lat": self.pickup_lat, "lng": self.pickup_lng}

    @property
    def disposal_location(self):
        return {"lat": self.disposal_lat, "lng": self.disposal_lng}

    @property
    def ai_analysis(self):
        """Disposal distance and dustbin snapshot, or None if no dustbin was linked."""
        if self.disposal_distance is None:
            return None
        return {
            "disposal_distance": self.disposal_distance,
            "nearest_dustbin": {
                "id": self.nearest_dustbin_id,
                "name": self.nearest_dustbin_name,
                "lat": self.nearest_dustbin_lat,
                "lng": self.nearest_dustbin_lng,
            },
        }

    def __repr__(self):
        return f"<Report(id={self.id}, collector={self.collector_email}, status={self.status})>"


class Incident(Base):
    """
    A citizen/collector-reported non-waste event (pothole, hazard, ...).
    rewarded flips from False to True exactly once, and only while resolved.
    """
    __tablename__ = "incidents"

    id = Column(Integer, primary_key=True, index=True)
    category = Column(String, nullable=False, index=True)
    description = Column(Text, default="")
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    image_base64 = Column(Text, nullable=False)
    urgency = Column(String, default="medium", index=True)  # low, medium, high, critical
    status = Column(String, nullable=False, default="reported", index=True)
    rewarded = Column(Boolean, nullable=False, default=False, index=True)
    reporter_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    assigned_to_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    notes = Column(Text, default="")
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, index=True)

    reporter = relationship("User", foreign_keys=[reporter_id])

    @property
    def coordinates(self):
        return {"lat": self.lat, "lng": self.lng}

    def __repr__(self):
        return f"<Incident(id={self.id}, category={self.category}, status={self.status})>"


class IncidentReward(Base):
    """Append-only grant of points to the reporter of a resolved incident."""
    __tablename__ = "incident_rewards"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    incident_id = Column(Integer, ForeignKey("incidents.id"), nullable=False, unique=True)
    points = Column(Integer, nullable=False)
    note = Column(Text, default="")
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User", back_populates="incident_rewards")

    __table_args__ = (
        CheckConstraint("points > 0", name="check_positive_reward_points"),
    )


class Withdrawal(Base):
    """Append-only cash-out ledger entry."""
    __tablename__ = "withdrawals"

    id = Column(Integer, primary_key=True, index=True)
    collector_email = Column(String, nullable=False, index=True)
    amount_points = Column(Integer, nullable=False)
    amount_rupees = Column(Float, nullable=False)
    payment_method = Column(String, default="upi")  # upi, bank
    payment_details = Column(JSON, default=dict)
    status = Column(String, default="pending", index=True)  # completed, pending, failed
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    __table_args__ = (
        Index("idx_withdrawals_collector_created", "collector_email", "created_at"),
    )


class Complaint(Base):
    """A citizen complaint, suggestion or issue raised with the municipality."""
    __tablename__ = "complaints"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String, nullable=False)  # complaint, suggestion, issue
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    photo_base64 = Column(Text, nullable=True)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    citizen_name = Column(String, nullable=False)
    citizen_email = Column(String, nullable=True, index=True)
    citizen_phone = Column(String, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    status = Column(String, default="pending", index=True)  # pending, in_progress, resolved, rejected
    priority = Column(String, default="medium")  # low, medium, high, urgent
    assigned_to_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    resolution_comment = Column(Text, nullable=True)
    resolved_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    assigned_to = relationship("User", foreign_keys=[assigned_to_id])
    resolved_by = relationship("User", foreign_keys=[resolved_by_id])

    @property
    def location(self):
        return {"lat": self.lat, "lng": self.lng}


class Photo(Base):
    """An uploaded photo stored inline as base64."""
    __tablename__ = "photos"

    id = Column(Integer, primary_key=True, index=True)
    filename = Column(String, nullable=True)
    content_type = Column(String, nullable=True)
    image_base64 = Column(Text, nullable=False)
    uploaded_at = Column(DateTime, default=datetime.utcnow)
