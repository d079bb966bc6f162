"""
Incident workflow.

Incidents are raised by any authenticated user and moved between
reported / acknowledged / in_progress / resolved / dismissed by employees in
any order. Once resolved, an employee may grant the reporter a one-time point
reward.
"""

import logging
import math
import random
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from models import POINTS_MAX, Incident, IncidentReward, User
from services.errors import InvalidState, NotFound, ValidationError

logger = logging.getLogger(__name__)

INCIDENT_CATEGORIES = (
    "pothole",
    "accident",
    "unethical_activity",
    "dead_animal",
    "suspicious_activity",
    "beggar",
    "tree_break",
    "electricity_pole_issue",
    "unauthorized_logging",
    "other",
)
INCIDENT_STATUSES = ("reported", "acknowledged", "in_progress", "resolved", "dismissed")
INCIDENT_URGENCIES = ("low", "medium", "high", "critical")

# Repair cost ranges (INR) for pothole incidents by urgency
REPAIR_COST_RANGES = {
    "low": (1500, 4000),
    "medium": (3000, 8000),
    "high": (6000, 15000),
    "critical": (12000, 30000),
}


def _filter_value(value: Optional[str]) -> Optional[str]:
    """Query-string filters treat "all" (or nothing) as no filter."""
    if not value or value == "all":
        return None
    return value


def get_incident(db: Session, incident_id: int) -> Incident:
    incident = db.query(Incident).filter(Incident.id == incident_id).first()
    if not incident:
        raise NotFound("Incident not found")
    return incident


def list_incidents(
    db: Session,
    user: User,
    status: Optional[str] = None,
    urgency: Optional[str] = None,
    category: Optional[str] = None,
) -> List[Incident]:
    """
    Incidents, most recently updated first. Collectors only see the
    incidents they reported.
    """
    query = db.query(Incident)
    if _filter_value(status):
        query = query.filter(Incident.status == status)
    if _filter_value(urgency):
        query = query.filter(Incident.urgency == urgency)
    if _filter_value(category):
        query = query.filter(Incident.category == category)
    if user.role == "collector":
        query = query.filter(Incident.reporter_id == user.id)
    return query.order_by(Incident.updated_at.desc(), Incident.id.desc()).all()


def create_incident(db: Session, reporter: User, payload: Dict) -> Incident:
    """
    Record a new incident in the "reported" state.

    Raises:
        ValidationError: If category, coordinates or image are missing or invalid
    """
    category = payload.get("category")
    coordinates = payload.get("coordinates") or {}
    image = payload.get("image_base64")
    if not category or coordinates.get("lat") is None or coordinates.get("lng") is None or not image:
        raise ValidationError("Category, coordinates, and image are required")
    if category not in INCIDENT_CATEGORIES:
        raise ValidationError("Invalid incident category")
    urgency = payload.get("urgency") or "medium"
    if urgency not in INCIDENT_URGENCIES:
        raise ValidationError("Invalid urgency")

    incident = Incident(
        category=category,
        description=payload.get("description") or "",
        lat=coordinates["lat"],
        lng=coordinates["lng"],
        image_base64=image,
        urgency=urgency,
        status="reported",
        rewarded=False,
        reporter_id=reporter.id,
    )
    db.add(incident)
    db.commit()
    db.refresh(incident)
    logger.info("Incident %s (%s) reported by %s", incident.id, category, reporter.email)
    return incident


def update_incident(db: Session, incident_id: int, user: User, payload: Dict) -> Incident:
    """
    Apply a partial update. Employees may change any workflow field; everyone
    else may only edit notes.

    Args:
        db: SQLAlchemy database session
        incident_id: ID of the incident
        user: Authenticated user making the change
        payload: Fields explicitly sent by the client

    Returns:
        The (possibly unchanged) Incident
    """
    incident = get_incident(db, incident_id)

    if user.role == "employee":
        editable = ("category", "description", "urgency", "status", "assigned_to_id", "notes")
    else:
        editable = ("notes",)

    updates = {key: payload[key] for key in editable if key in payload}
    if "status" in updates and updates["status"] not in INCIDENT_STATUSES:
        raise ValidationError("Invalid status")
    if "urgency" in updates and updates["urgency"] not in INCIDENT_URGENCIES:
        raise ValidationError("Invalid urgency")
    if "category" in updates and updates["category"] not in INCIDENT_CATEGORIES:
        raise ValidationError("Invalid incident category")

    coordinates = payload.get("coordinates") if user.role == "employee" else None
    if coordinates and coordinates.get("lat") is not None and coordinates.get("lng") is not None:
        updates["lat"] = coordinates["lat"]
        updates["lng"] = coordinates["lng"]

    if not updates:
        return incident

    for key, value in updates.items():
        setattr(incident, key, value)
    incident.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(incident)
    return incident


def award_incident_reward(db: Session, incident_id: int, points: float, note: str = "") -> IncidentReward:
    """
    Grant the reporter of a resolved incident a one-time point reward.

    Flipping rewarded from False to True is a single conditional UPDATE
    (WHERE status = 'resolved' AND rewarded = false); only the request that
    wins it inserts the IncidentReward row, in the same transaction.

    Args:
        db: SQLAlchemy database session
        incident_id: ID of the incident
        points: Positive number of points
        note: Optional note shown in the reporter's transaction feed

    Returns:
        The created IncidentReward

    Raises:
        ValidationError: If points is not a positive whole number in the column range
        NotFound: If the incident or its reporter does not exist
        InvalidState: If the incident is not resolved or was already rewarded
    """
    if not points or math.isnan(points) or points <= 0:
        raise ValidationError("Positive points required")
    if points > POINTS_MAX:
        raise ValidationError("Points out of range")
    if points != int(points):
        raise ValidationError("Points must be a whole number")

    incident = get_incident(db, incident_id)
    if incident.reporter_id is None:
        raise NotFound("Incident has no reporter")
    reporter = db.query(User).filter(User.id == incident.reporter_id).first()
    if reporter is None:
        raise NotFound("Reporter not found")
    if incident.status != "resolved":
        raise InvalidState("Points can only be awarded when incident is resolved")
    if incident.rewarded:
        raise InvalidState("Points already awarded for this incident")

    try:
        result = db.execute(
            update(Incident)
            .where(
                Incident.id == incident_id,
                Incident.status == "resolved",
                Incident.rewarded.is_(False),
            )
            .values(rewarded=True, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # Lost the race to another reward, or the status changed underneath us
            db.rollback()
            raise InvalidState("Points already awarded for this incident")

        reward = IncidentReward(
            user_id=reporter.id,
            incident_id=incident_id,
            points=int(points),
            note=note or "",
        )
        db.add(reward)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(reward)
    logger.info("Awarded %d points to %s for incident %s", reward.points, reporter.email, incident_id)
    return reward


def estimate_repair(incident: Incident) -> Dict:
    """
    Rough repair cost for a pothole incident, picked at random from a range
    that widens with urgency. Not an engineering estimate.

    Raises:
        ValidationError: If the incident is not a pothole
    """
    if incident.category != "pothole":
        raise ValidationError("Repair estimate is only available for pothole incidents")

    urgency = incident.urgency or "medium"
    base_min, base_max = REPAIR_COST_RANGES.get(urgency, REPAIR_COST_RANGES["medium"])
    estimated_cost = round(base_min + (base_max - base_min) * random.random())

    return {
        "incident_id": incident.id,
        "category": incident.category,
        "urgency": urgency,
        "estimated_cost": estimated_cost,
        "currency": "INR",
        "note": "This is a rough automated estimate based on urgency and basic heuristics, "
                "not a real engineering calculation.",
    }
