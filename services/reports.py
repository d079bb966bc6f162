"""
Report verification workflow.

A collector submits a report (pickup + disposal photos); an employee reviews it
once. Reports move pending -> approved or pending -> rejected and never leave
either terminal state. Approval assigns the report's points and, when the
report is linked to a dustbin, rolls the dustbin's photo forward.
"""

import logging
import math
import os
from typing import Dict, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from models import POINTS_MAX, Dustbin, DustbinPhoto, Report, User
from services.errors import InvalidState, NotFound, ValidationError
from services.geo import distance_between

logger = logging.getLogger(__name__)

POINTS_PER_KG = float(os.getenv("POINTS_PER_KG", "10"))

# Maximum number of archived photos kept per dustbin
PHOTO_HISTORY_LIMIT = 20

REVIEW_STATUSES = ("approved", "rejected")


def infer_weight_from_points(points: int) -> float:
    """Estimate the collected waste weight (kg) from the points awarded."""
    if not points or POINTS_PER_KG <= 0:
        return 0.0
    return points / POINTS_PER_KG


def _dustbin_snapshot(db: Session, dustbin_id: int, disposal_location: Dict) -> Dict:
    """
    Distance from the disposal location to the linked dustbin, plus a copy of
    the dustbin's identity and position. Empty if the dustbin can't be found.
    """
    dustbin = db.query(Dustbin).filter(Dustbin.id == dustbin_id).first()
    if dustbin is None:
        return {}
    distance = distance_between(disposal_location, {"lat": dustbin.lat, "lng": dustbin.lng})
    if distance is None:
        return {}
    return {
        "disposal_distance": distance,
        "nearest_dustbin_id": dustbin.id,
        "nearest_dustbin_name": dustbin.name,
        "nearest_dustbin_lat": dustbin.lat,
        "nearest_dustbin_lng": dustbin.lng,
    }


def create_report(db: Session, collector: User, payload: Dict) -> Report:
    """
    Store a new pending report for a collector.

    If a dustbin is linked, the disposal-to-dustbin distance is computed on a
    best-effort basis: a failed lookup is logged and the report is stored
    without it.

    Args:
        db: SQLAlchemy database session
        collector: Authenticated submitting user
        payload: Report fields (images, locations, optional dustbin_id,
            material_type, waste_weight_kg)

    Returns:
        The created Report (status pending, 0 points)

    Raises:
        ValidationError: If an image or location is missing
    """
    pickup_image = payload.get("pickup_image_base64")
    pickup_location = payload.get("pickup_location")
    disposal_image = payload.get("disposal_image_base64")
    disposal_location = payload.get("disposal_location")
    if not pickup_image or not pickup_location or not disposal_image or not disposal_location:
        raise ValidationError("Missing required fields")

    dustbin_id = payload.get("dustbin_id")
    snapshot = {}
    if dustbin_id:
        try:
            snapshot = _dustbin_snapshot(db, dustbin_id, disposal_location)
        except Exception:
            logger.exception("Failed to compute disposal distance for dustbin %s", dustbin_id)
            db.rollback()

    waste_weight_kg = payload.get("waste_weight_kg")
    report = Report(
        pickup_image_base64=pickup_image,
        pickup_lat=pickup_location["lat"],
        pickup_lng=pickup_location["lng"],
        disposal_image_base64=disposal_image,
        disposal_lat=disposal_location["lat"],
        disposal_lng=disposal_location["lng"],
        dustbin_id=dustbin_id or None,
        status="pending",
        collector_email=collector.email,
        collector_id=collector.id,
        points=0,
        waste_weight_kg=waste_weight_kg if isinstance(waste_weight_kg, (int, float)) else 0,
        material_type=payload.get("material_type") or None,
        **snapshot,
    )
    db.add(report)
    db.commit()
    db.refresh(report)
    logger.info("Report %s submitted by %s", report.id, collector.email)
    return report


def list_reports(
    db: Session,
    collector_email: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict:
    """
    Paginated reports, most recent first.

    Args:
        db: SQLAlchemy database session
        collector_email: Restrict to one collector's reports if given
        page: 1-based page number
        limit: Page size

    Returns:
        Dictionary with reports, total, page, limit and total_pages
    """
    page = max(page, 1)
    limit = max(limit, 1)
    query = db.query(Report)
    if collector_email:
        query = query.filter(Report.collector_email == collector_email)

    total = query.count()
    reports = (
        query.order_by(Report.submitted_at.desc(), Report.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "reports": reports,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit),
    }


def get_report(db: Session, report_id: int) -> Report:
    report = db.query(Report).filter(Report.id == report_id).first()
    if not report:
        raise NotFound("Report not found")
    return report


def latest_disposal_image(db: Session, dustbin_id: int) -> Report:
    """Most recent report submitted against a dustbin."""
    report = (
        db.query(Report)
        .filter(Report.dustbin_id == dustbin_id)
        .order_by(Report.submitted_at.desc(), Report.id.desc())
        .first()
    )
    if not report:
        raise NotFound("No disposal reports found for this dustbin")
    return report


def archive_dustbin_photo(dustbin: Dustbin, new_photo: str, report_id: Optional[int] = None) -> None:
    """
    Replace a dustbin's current photo, moving the old one into its history.
    The history keeps the PHOTO_HISTORY_LIMIT most recent entries, oldest first.
    """
    if dustbin.photo_base64:
        dustbin.photo_history.append(DustbinPhoto(photo=dustbin.photo_base64, report_id=report_id))
    dustbin.photo_base64 = new_photo

    overflow = len(dustbin.photo_history) - PHOTO_HISTORY_LIMIT
    if overflow > 0:
        del dustbin.photo_history[:overflow]


def update_report_status(
    db: Session,
    report_id: int,
    status: str,
    points: Optional[int] = None,
    verification_comment: Optional[str] = None,
    verified_by: Optional[str] = None,
) -> Report:
    """
    Review a pending report.

    The pending -> approved/rejected transition is a conditional UPDATE on
    status = 'pending', so a report can only be reviewed once even when two
    employees submit at the same moment. Dustbin side effects are written in
    the same transaction.

    Args:
        db: SQLAlchemy database session
        report_id: ID of the report to review
        status: "approved" or "rejected"
        points: Points to award (approval only)
        verification_comment: Optional reviewer comment
        verified_by: Optional reviewer name

    Returns:
        The updated Report

    Raises:
        ValidationError: If status is not a review outcome or points are out of range
        NotFound: If the report does not exist
        InvalidState: If the report has already been reviewed
    """
    if status not in REVIEW_STATUSES:
        raise ValidationError("Invalid status")
    if points is not None and points < 0:
        raise ValidationError("Points must not be negative")
    if points is not None and points > POINTS_MAX:
        raise ValidationError("Points out of range")

    values = {"status": status}
    if status == "approved" and points is not None:
        values["points"] = int(points)
    if verification_comment is not None:
        values["verification_comment"] = verification_comment
    if verified_by is not None:
        values["verified_by"] = verified_by

    try:
        result = db.execute(
            update(Report)
            .where(Report.id == report_id, Report.status == "pending")
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.rollback()
            existing = db.query(Report).filter(Report.id == report_id).first()
            if existing is None:
                raise NotFound("Report not found")
            raise InvalidState(f"Report has already been {existing.status}")

        report = db.query(Report).populate_existing().filter(Report.id == report_id).one()

        if status == "approved":
            if not report.waste_weight_kg:
                report.waste_weight_kg = infer_weight_from_points(report.points)
            if report.dustbin_id:
                dustbin = db.query(Dustbin).filter(Dustbin.id == report.dustbin_id).first()
                if dustbin:
                    archive_dustbin_photo(dustbin, report.disposal_image_base64, report.id)

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(report)
    logger.info("Report %s %s with %s points", report.id, status, report.points)
    return report
