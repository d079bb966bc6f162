"""
Rewards accounting service.

Computes a collector's balance from the two earning sources (approved reports
and incident rewards) and applies withdrawals against it.

    lifetime_points  = sum(approved report points) + sum(incident reward points)
    available_points = max(lifetime_points - withdrawn_points, 0)

Points convert to rupees at a fixed rate (POINTS_PER_RUPEE).
"""

import logging
import math
import os
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from models import POINTS_MAX, IncidentReward, Report, User, Withdrawal
from services.errors import InsufficientBalance, NotFound, ValidationError

logger = logging.getLogger(__name__)

POINTS_PER_RUPEE = float(os.getenv("POINTS_PER_RUPEE", "100"))

# Number of entries in the recent transaction feed (and per source before merging)
TRANSACTION_FEED_SIZE = 10

PAYMENT_METHODS = ("upi", "bank")


def points_to_rupees(points: float) -> float:
    """Convert points to rupees at the configured rate."""
    return points / POINTS_PER_RUPEE


def rupees_to_points(rupees: float) -> int:
    """Convert rupees to points, rounding half up to the nearest whole point."""
    return int(math.floor(rupees * POINTS_PER_RUPEE + 0.5))


def _approved_report_points(email):
    """SELECT for the sum of points over a collector's approved reports."""
    return select(func.coalesce(func.sum(Report.points), 0)).where(
        Report.collector_email == email,
        Report.status == "approved",
    )


def _incident_reward_points(user_id):
    """SELECT for the sum of incident reward points granted to a user."""
    return select(func.coalesce(func.sum(IncidentReward.points), 0)).where(
        IncidentReward.user_id == user_id
    )


def _recent_transactions(db: Session, user: User) -> List[Dict]:
    """
    Merge the most recent report credits, incident credits and withdrawals
    into a single feed, newest first.
    """
    recent_reports = (
        db.query(Report)
        .filter(Report.collector_email == user.email, Report.status == "approved")
        .order_by(Report.submitted_at.desc(), Report.id.desc())
        .limit(TRANSACTION_FEED_SIZE)
        .all()
    )
    recent_rewards = (
        db.query(IncidentReward)
        .filter(IncidentReward.user_id == user.id)
        .order_by(IncidentReward.created_at.desc(), IncidentReward.id.desc())
        .limit(TRANSACTION_FEED_SIZE)
        .all()
    )
    recent_withdrawals = (
        db.query(Withdrawal)
        .filter(Withdrawal.collector_email == user.email)
        .order_by(Withdrawal.created_at.desc(), Withdrawal.id.desc())
        .limit(TRANSACTION_FEED_SIZE)
        .all()
    )

    transactions = [
        {
            "id": f"report-{r.id}",
            "type": "earned",
            "amount_points": r.points or 0,
            "amount_rupees": points_to_rupees(r.points or 0),
            "status": "completed",
            "description": r.verification_comment or "Approved waste collection report",
            "created_at": r.submitted_at,
        }
        for r in recent_reports
    ]
    transactions += [
        {
            "id": f"incident-reward-{r.id}",
            "type": "earned",
            "amount_points": r.points or 0,
            "amount_rupees": points_to_rupees(r.points or 0),
            "status": "completed",
            "description": r.note or "Incident reward",
            "created_at": r.created_at,
        }
        for r in recent_rewards
    ]
    transactions += [
        {
            "id": f"withdrawal-{w.id}",
            "type": "withdrawn",
            "amount_points": w.amount_points,
            "amount_rupees": w.amount_rupees,
            "status": w.status,
            "description": "Withdrawal processed",
            "created_at": w.created_at,
        }
        for w in recent_withdrawals
    ]

    transactions.sort(key=lambda t: t["created_at"] or datetime.min, reverse=True)
    return transactions[:TRANSACTION_FEED_SIZE]


def build_summary(db: Session, email: str) -> Dict:
    """
    Build the balance snapshot for one user.

    All reads go through the same session. withdrawn_points comes from the
    User row, which is only ever written together with a ledger entry
    (see withdraw()).

    Args:
        db: SQLAlchemy database session
        email: Email of the user

    Returns:
        Dictionary with lifetime/available/withdrawn points, rupee equivalents,
        pending report count, conversion rates and recent transactions

    Raises:
        NotFound: If no user has this email
    """
    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise NotFound("User not found")

    lifetime_report_points = db.execute(_approved_report_points(email)).scalar_one()
    lifetime_incident_points = db.execute(_incident_reward_points(user.id)).scalar_one()
    lifetime_points = lifetime_report_points + lifetime_incident_points
    withdrawn_points = user.withdrawn_points or 0
    available_points = max(lifetime_points - withdrawn_points, 0)

    pending_reports = (
        db.query(Report)
        .filter(Report.collector_email == email, Report.status == "pending")
        .count()
    )

    return {
        "lifetime_points": lifetime_points,
        "lifetime_report_points": lifetime_report_points,
        "lifetime_incident_points": lifetime_incident_points,
        "withdrawn_points": withdrawn_points,
        "available_points": available_points,
        "available_rupees": points_to_rupees(available_points),
        "withdrawn_rupees": points_to_rupees(withdrawn_points),
        "pending_reports": pending_reports,
        "conversion": {
            "points_per_rupee": POINTS_PER_RUPEE,
            "rupees_per_point": 1 / POINTS_PER_RUPEE,
        },
        "transactions": _recent_transactions(db, user),
    }


def _resolve_amounts(amount_points: float, amount_rupees: float) -> Tuple[int, float]:
    """
    Work out the (points, rupees) pair for a withdrawal request.
    Exactly one of the two amounts is given; the other is derived from it.
    """
    amount_points = amount_points or 0
    amount_rupees = amount_rupees or 0

    if math.isnan(amount_points) or math.isnan(amount_rupees) or amount_points < 0 or amount_rupees < 0:
        raise ValidationError("Invalid withdrawal amount")
    if amount_points == 0 and amount_rupees == 0:
        raise ValidationError("Amount required")
    if amount_points > 0 and amount_rupees > 0:
        raise ValidationError("Provide either amountPoints or amountRupees, not both")

    # No balance can reach past the column range; inf lands here too
    if amount_points > POINTS_MAX or amount_rupees * POINTS_PER_RUPEE > POINTS_MAX:
        raise InsufficientBalance("Insufficient points for withdrawal")

    if amount_points > 0:
        if amount_points != int(amount_points):
            raise ValidationError("amountPoints must be a whole number")
        points = int(amount_points)
        rupees = points_to_rupees(points)
    else:
        points = rupees_to_points(amount_rupees)
        rupees = amount_rupees

    if points <= 0 or rupees <= 0:
        raise ValidationError("Invalid withdrawal amount")
    return points, rupees


def withdraw(
    db: Session,
    email: str,
    amount_points: float = 0,
    amount_rupees: float = 0,
    payment_method: str = "upi",
    payment_details: Optional[Dict] = None,
) -> Dict:
    """
    Withdraw points from a user's available balance.

    The balance check and the increment of withdrawn_points are a single
    conditional UPDATE, so two concurrent withdrawals can never both pass the
    check against the same balance. The ledger row is written in the same
    transaction: either both writes commit or neither does.

    Args:
        db: SQLAlchemy database session
        email: Email of the withdrawing user
        amount_points: Points to withdraw (mutually exclusive with amount_rupees)
        amount_rupees: Rupees to withdraw (mutually exclusive with amount_points)
        payment_method: "upi" or "bank"
        payment_details: Opaque payout details (UPI id, account number, ...)

    Returns:
        A freshly computed summary reflecting the withdrawal

    Raises:
        ValidationError: If the amount is missing or not positive
        NotFound: If no user has this email
        InsufficientBalance: If the amount exceeds the available points
            (or could never fit in the balance columns)
    """
    points, rupees = _resolve_amounts(amount_points, amount_rupees)
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError("Invalid payment method")

    lifetime_points = (
        _approved_report_points(User.email).scalar_subquery()
        + _incident_reward_points(User.id).scalar_subquery()
    )
    try:
        result = db.execute(
            update(User)
            .where(User.email == email)
            .where(User.withdrawn_points + points <= lifetime_points)
            .values(withdrawn_points=User.withdrawn_points + points)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.rollback()
            if db.query(User.id).filter(User.email == email).first() is None:
                raise NotFound("User not found")
            raise InsufficientBalance("Insufficient points for withdrawal")

        db.add(Withdrawal(
            collector_email=email,
            amount_points=points,
            amount_rupees=rupees,
            payment_method=payment_method,
            payment_details=payment_details or {},
            status="completed",
        ))
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Withdrawal of %d points (%.2f INR) completed for %s", points, rupees, email)
    return build_summary(db, email)


def reconcile_withdrawn_points(db: Session, email: str) -> Dict:
    """
    Compare the denormalized withdrawn_points counter with the withdrawal ledger.

    The ledger is the source of truth; any non-zero drift means the counter was
    written outside withdraw().

    Returns:
        Dictionary with counter, ledger and drift (counter - ledger)
    """
    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise NotFound("User not found")

    ledger = (
        db.query(func.coalesce(func.sum(Withdrawal.amount_points), 0))
        .filter(Withdrawal.collector_email == email, Withdrawal.status == "completed")
        .scalar()
    )
    counter = user.withdrawn_points or 0
    drift = counter - ledger
    if drift:
        logger.warning("withdrawn_points drift for %s: counter=%d ledger=%d", email, counter, ledger)
    return {"email": email, "counter": counter, "ledger": ledger, "drift": drift}
