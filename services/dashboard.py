"""
Read-only dashboard aggregations for collectors, employees and the community page.
"""

import os
from datetime import datetime
from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from models import Complaint, Dustbin, Incident, IncidentReward, Report, User
from services.reports import infer_weight_from_points
from services.rewards import build_summary

CO2_PER_KG = float(os.getenv("CO2_PER_KG", "1.5"))
MONTHLY_REPORT_GOAL = int(os.getenv("MONTHLY_REPORT_GOAL", "10"))
MONTHLY_POINTS_GOAL = int(os.getenv("MONTHLY_POINTS_GOAL", str(MONTHLY_REPORT_GOAL * 50)))

SERIES_MONTHS = 6
LEADERBOARD_SIZE = 50


def _shift_month(moment: datetime, offset: int) -> datetime:
    """First instant of the month `offset` months away from `moment`'s month."""
    years, month_index = divmod(moment.month - 1 + offset, 12)
    return datetime(moment.year + years, month_index + 1, 1)


def _monthly_series(db: Session, now: datetime, collector_email: str = None) -> List[Dict]:
    """Approved points and report counts for each of the last SERIES_MONTHS months."""
    series = []
    for offset in range(SERIES_MONTHS - 1, -1, -1):
        start = _shift_month(now, -offset)
        end = _shift_month(now, -offset + 1)
        query = db.query(func.coalesce(func.sum(Report.points), 0), func.count(Report.id)).filter(
            Report.status == "approved",
            Report.submitted_at >= start,
            Report.submitted_at < end,
        )
        if collector_email:
            query = query.filter(Report.collector_email == collector_email)
        points, count = query.one()
        series.append({"month": start.strftime("%b"), "points": points or 0, "reports": count or 0})
    return series


def _count_reports(db: Session, email: str, status: str) -> int:
    return db.query(Report).filter(Report.collector_email == email, Report.status == status).count()


def collector_dashboard(db: Session, user: User) -> Dict:
    """
    Balance, goal progress and recent activity for one collector.
    Balances come from build_summary so they always agree with the rewards page.
    """
    now = datetime.utcnow()
    email = user.email
    summary = build_summary(db, email)

    approved = (
        db.query(Report.points, Report.waste_weight_kg, Report.submitted_at)
        .filter(Report.collector_email == email, Report.status == "approved")
        .all()
    )
    month_start = _shift_month(now, 0)
    this_month = [r for r in approved if r.submitted_at and r.submitted_at >= month_start]
    reports_this_month = len(this_month)
    points_this_month = sum(r.points or 0 for r in this_month)
    waste_collected_kg = sum(r.waste_weight_kg or infer_weight_from_points(r.points or 0) for r in approved)

    recent_reports = (
        db.query(Report)
        .filter(Report.collector_email == email)
        .order_by(Report.submitted_at.desc(), Report.id.desc())
        .limit(10)
        .all()
    )
    recent_incidents = (
        db.query(Incident)
        .filter(Incident.reporter_id == user.id)
        .order_by(Incident.updated_at.desc())
        .limit(20)
        .all()
    )
    recent_rewards = (
        db.query(IncidentReward)
        .filter(IncidentReward.user_id == user.id)
        .order_by(IncidentReward.created_at.desc())
        .limit(10)
        .all()
    )

    return {
        "summary": {
            "lifetime_points": summary["lifetime_points"],
            "available_points": summary["available_points"],
            "available_rupees": summary["available_rupees"],
            "withdrawn_points": summary["withdrawn_points"],
            "withdrawn_rupees": summary["withdrawn_rupees"],
            "pending_reports": summary["pending_reports"],
            "approved_reports": len(approved),
            "rejected_reports": _count_reports(db, email, "rejected"),
        },
        "monthly_progress": {
            "reports_this_month": reports_this_month,
            "points_this_month": points_this_month,
            "monthly_goal_reports": MONTHLY_REPORT_GOAL,
            "monthly_goal_points": MONTHLY_POINTS_GOAL,
            "progress_percent": (
                min(reports_this_month / MONTHLY_REPORT_GOAL * 100, 100) if MONTHLY_REPORT_GOAL else 0
            ),
        },
        "recent_activity": [
            {
                "id": r.id,
                "status": r.status,
                "points": r.points or 0,
                "submitted_at": r.submitted_at,
                "verification_comment": r.verification_comment or "",
            }
            for r in recent_reports
        ],
        "series": _monthly_series(db, now, email),
        "waste_collected_kg": waste_collected_kg,
        "incidents": {
            "recent": [
                {"id": i.id, "category": i.category, "status": i.status, "rewarded": i.rewarded,
                 "updated_at": i.updated_at}
                for i in recent_incidents
            ],
            "recent_rewards": [
                {"id": r.id, "incident_id": r.incident_id, "points": r.points, "note": r.note,
                 "created_at": r.created_at}
                for r in recent_rewards
            ],
        },
    }


def employee_dashboard(db: Session) -> Dict:
    """Review queue, per-collector totals and dustbin fleet status."""
    now = datetime.utcnow()
    start_of_day = datetime(now.year, now.month, now.day)

    report_counts = dict(db.query(Report.status, func.count(Report.id)).group_by(Report.status).all())
    approved_today = (
        db.query(Report)
        .filter(Report.status == "approved", Report.submitted_at >= start_of_day)
        .count()
    )
    recent_reports = db.query(Report).order_by(Report.submitted_at.desc(), Report.id.desc()).limit(10).all()

    collector_rows = (
        db.query(
            Report.collector_email,
            func.count(Report.id),
            func.coalesce(func.sum(Report.points), 0),
            func.coalesce(func.sum(Report.waste_weight_kg), 0),
            func.max(Report.submitted_at),
        )
        .filter(Report.status == "approved")
        .group_by(Report.collector_email)
        .order_by(func.sum(Report.points).desc())
        .all()
    )
    active_collectors = (
        db.query(func.count(func.distinct(Report.collector_email)))
        .filter(Report.collector_email.isnot(None))
        .scalar()
    )

    dustbins = db.query(Dustbin).all()
    dustbin_stats = {
        "total": len(dustbins),
        "active": sum(1 for d in dustbins if d.status == "active"),
        "full": sum(1 for d in dustbins if d.status == "full"),
        "maintenance": sum(1 for d in dustbins if d.status == "maintenance"),
        "urgent": sum(1 for d in dustbins if d.urgent),
        "average_fill": round(sum(d.fill_level or 0 for d in dustbins) / len(dustbins)) if dustbins else 0,
    }

    return {
        "reports": {
            "pending_count": report_counts.get("pending", 0),
            "approved_today": approved_today,
            "total_reports": sum(report_counts.values()),
            "approved_total": report_counts.get("approved", 0),
            "rejected_total": report_counts.get("rejected", 0),
            "recent_reports": [
                {
                    "id": r.id,
                    "status": r.status,
                    "collector_email": r.collector_email,
                    "points": r.points or 0,
                    "submitted_at": r.submitted_at,
                    "verification_comment": r.verification_comment or "",
                    "nearest_dustbin_name": r.nearest_dustbin_name,
                    "disposal_distance": r.disposal_distance,
                }
                for r in recent_reports
            ],
            "monthly_series": _monthly_series(db, now),
        },
        "complaints": {
            "pending": db.query(Complaint).filter(Complaint.status == "pending").count(),
            "urgent": db.query(Complaint).filter(
                Complaint.status.in_(("pending", "in_progress")),
                Complaint.priority.in_(("high", "urgent")),
            ).count(),
        },
        "collectors": {
            "active_collectors": active_collectors or 0,
            "stats": [
                {
                    "email": email,
                    "total_reports": count,
                    "total_points": points,
                    "total_weight": weight,
                    "last_active": last_active,
                }
                for email, count, points, weight, last_active in collector_rows
            ],
        },
        "dustbins": dustbin_stats,
    }


def community_stats(db: Session) -> Dict:
    """Community totals and the points leaderboard (approved report points only)."""
    now = datetime.utcnow()
    start_of_day = datetime(now.year, now.month, now.day)

    total_members = db.query(User).filter(User.role == "collector").count()
    active_today = (
        db.query(User)
        .filter(User.role == "collector", User.last_active_at >= start_of_day)
        .count()
    )

    approved = db.query(Report.points, Report.waste_weight_kg).filter(Report.status == "approved").all()
    total_points = sum(r.points or 0 for r in approved)
    waste_kg = sum(r.waste_weight_kg or infer_weight_from_points(r.points or 0) for r in approved)

    leaders = (
        db.query(Report.collector_email, func.sum(Report.points).label("total_points"))
        .filter(Report.status == "approved", Report.collector_email.isnot(None))
        .group_by(Report.collector_email)
        .order_by(func.sum(Report.points).desc())
        .limit(LEADERBOARD_SIZE)
        .all()
    )
    emails = [email for email, _ in leaders]
    collectors = {
        u.email: u for u in db.query(User).filter(User.role == "collector", User.email.in_(emails)).all()
    } if emails else {}

    leaderboard = []
    for email, points in leaders:
        collector = collectors.get(email)
        leaderboard.append({
            "id": collector.id if collector else None,
            "name": (collector.name or collector.email) if collector else email,
            "email": email,
            "points": points or 0,
            "current_streak": collector.current_streak if collector else 0,
            "longest_streak": collector.longest_streak if collector else 0,
            "last_active_at": collector.last_active_at if collector else None,
        })

    return {
        "stats": {
            "total_members": total_members,
            "active_today": active_today,
            "waste_collected_kg": waste_kg,
            "co2_saved_kg": waste_kg * CO2_PER_KG,
            "total_points": total_points,
        },
        "leaderboard": leaderboard,
    }
