"""
Citizen complaints, suggestions and issues, triaged by employees.
"""

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from models import Complaint, User
from services.errors import Forbidden, NotFound, ValidationError

COMPLAINT_TYPES = ("complaint", "suggestion", "issue")
COMPLAINT_STATUSES = ("pending", "in_progress", "resolved", "rejected")
COMPLAINT_PRIORITIES = ("low", "medium", "high", "urgent")


def _is_owner(complaint: Complaint, user: User) -> bool:
    return complaint.created_by == user.id or complaint.citizen_email == user.email


def create_complaint(db: Session, user: User, payload: Dict) -> Complaint:
    """
    File a complaint. The citizen email always comes from the session, never the body.

    Raises:
        ValidationError: If a required field or the location is missing
    """
    required = ("type", "title", "description", "location", "citizen_name")
    if any(not payload.get(field) for field in required):
        raise ValidationError("Missing required fields: type, title, description, location, citizenName")
    location = payload["location"]
    if location.get("lat") is None or location.get("lng") is None:
        raise ValidationError("Invalid location: lat and lng are required")
    if payload["type"] not in COMPLAINT_TYPES:
        raise ValidationError("Invalid complaint type")
    priority = payload.get("priority") or "medium"
    if priority not in COMPLAINT_PRIORITIES:
        raise ValidationError("Invalid priority")

    complaint = Complaint(
        type=payload["type"],
        title=payload["title"],
        description=payload["description"],
        photo_base64=payload.get("photo_base64"),
        lat=location["lat"],
        lng=location["lng"],
        citizen_name=payload["citizen_name"],
        citizen_email=user.email,
        citizen_phone=payload.get("citizen_phone"),
        created_by=user.id,
        priority=priority,
    )
    db.add(complaint)
    db.commit()
    db.refresh(complaint)
    return complaint


def list_complaints(
    db: Session,
    user: User,
    type: Optional[str] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
) -> List[Complaint]:
    """Complaints, newest first. Non-employees only see their own."""
    query = db.query(Complaint)
    if type:
        query = query.filter(Complaint.type == type)
    if status:
        query = query.filter(Complaint.status == status)
    if priority:
        query = query.filter(Complaint.priority == priority)
    if user.role != "employee":
        query = query.filter(or_(Complaint.created_by == user.id, Complaint.citizen_email == user.email))
    return query.order_by(Complaint.created_at.desc(), Complaint.id.desc()).all()


def get_complaint(db: Session, complaint_id: int, user: User) -> Complaint:
    complaint = db.query(Complaint).filter(Complaint.id == complaint_id).first()
    if not complaint:
        raise NotFound("Complaint not found")
    if user.role != "employee" and not _is_owner(complaint, user):
        raise Forbidden()
    return complaint


def update_complaint(db: Session, complaint_id: int, employee: User, payload: Dict) -> Complaint:
    """Triage a complaint. Moving it to resolved records who resolved it and when."""
    complaint = db.query(Complaint).filter(Complaint.id == complaint_id).first()
    if not complaint:
        raise NotFound("Complaint not found")

    status = payload.get("status")
    if status is not None and status not in COMPLAINT_STATUSES:
        raise ValidationError("Invalid status")
    priority = payload.get("priority")
    if priority is not None and priority not in COMPLAINT_PRIORITIES:
        raise ValidationError("Invalid priority")

    for key in ("status", "priority", "assigned_to_id", "resolution_comment"):
        if key in payload:
            setattr(complaint, key, payload[key])
    if status == "resolved":
        complaint.resolved_by_id = employee.id
        complaint.resolved_at = datetime.utcnow()

    db.commit()
    db.refresh(complaint)
    return complaint


def delete_complaint(db: Session, complaint_id: int) -> None:
    complaint = db.query(Complaint).filter(Complaint.id == complaint_id).first()
    if not complaint:
        raise NotFound("Complaint not found")
    db.delete(complaint)
    db.commit()
