"""
Dustbin registry: the physical collection points collectors dispose into.
"""

from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from models import Dustbin, User
from services.errors import NotFound, ValidationError

DUSTBIN_STATUSES = ("active", "inactive", "maintenance", "full")

EMPLOYEE_EDITABLE = (
    "name",
    "sector",
    "type",
    "capacity_liters",
    "description",
    "status",
    "fill_level",
    "last_emptied_at",
    "urgent",
    "photo_base64",
    "verification_radius",
)


def clamp_fill_level(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


def list_dustbins(db: Session, status: Optional[str] = None) -> List[Dustbin]:
    query = db.query(Dustbin)
    if status and status != "all":
        query = query.filter(Dustbin.status == status)
    return query.order_by(Dustbin.updated_at.desc(), Dustbin.id.desc()).all()


def get_dustbin(db: Session, dustbin_id: int) -> Dustbin:
    dustbin = db.query(Dustbin).filter(Dustbin.id == dustbin_id).first()
    if not dustbin:
        raise NotFound("Dustbin not found")
    return dustbin


def create_dustbin(db: Session, employee: User, payload: Dict) -> Dustbin:
    """
    Register a dustbin. The photo taken at deployment is kept as the initial photo.

    Raises:
        ValidationError: If name, coordinates or photo are missing
    """
    coordinates = payload.get("coordinates") or {}
    photo = payload.get("photo_base64")
    if not payload.get("name") or coordinates.get("lat") is None or coordinates.get("lng") is None or not photo:
        raise ValidationError("Name, coordinates, and photo are required")
    status = payload.get("status") or "active"
    if status not in DUSTBIN_STATUSES:
        raise ValidationError("Invalid status")

    fill_level = payload.get("fill_level")
    dustbin = Dustbin(
        name=payload["name"],
        sector=payload.get("sector"),
        type=payload.get("type") or "mixed",
        capacity_liters=payload.get("capacity_liters") or 0,
        description=payload.get("description"),
        status=status,
        fill_level=clamp_fill_level(fill_level) if fill_level is not None else 0,
        lat=coordinates["lat"],
        lng=coordinates["lng"],
        last_emptied_at=payload.get("last_emptied_at"),
        photo_base64=photo,
        initial_photo_base64=photo,
        verification_radius=payload.get("verification_radius") or 1.0,
        created_by=employee.id,
        updated_by=employee.id,
    )
    db.add(dustbin)
    db.commit()
    db.refresh(dustbin)
    return dustbin


def update_dustbin(db: Session, dustbin_id: int, user: User, payload: Dict) -> Dustbin:
    """
    Partially update a dustbin. Employees may change any field; collectors may
    only flag a dustbin as urgent.
    """
    dustbin = get_dustbin(db, dustbin_id)

    if user.role == "employee":
        updates = {key: payload[key] for key in EMPLOYEE_EDITABLE if key in payload}
        coordinates = payload.get("coordinates")
        if coordinates and coordinates.get("lat") is not None and coordinates.get("lng") is not None:
            updates["lat"] = coordinates["lat"]
            updates["lng"] = coordinates["lng"]
    else:
        updates = {"urgent": True} if payload.get("urgent") is True else {}

    if "status" in updates and updates["status"] not in DUSTBIN_STATUSES:
        raise ValidationError("Invalid status")
    if updates.get("fill_level") is not None:
        updates["fill_level"] = clamp_fill_level(updates["fill_level"])

    if not updates:
        return dustbin

    for key, value in updates.items():
        setattr(dustbin, key, value)
    dustbin.updated_by = user.id
    db.commit()
    db.refresh(dustbin)
    return dustbin
