"""
Main FastAPI application for the EcoWaste backend.
Provides REST API endpoints for waste-collection reports, rewards and withdrawals,
dustbins, incidents, complaints and dashboards.
"""

from dotenv import load_dotenv
load_dotenv()  # Load environment variables from .env file

import base64
import logging
import os
from fastapi import FastAPI, Depends, Request, status, File, UploadFile, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session
from typing import List, Optional

from database import engine, get_db, Base
from models import Photo, User
from schemas import (
    AuthResponse,
    CollectorDashboard,
    CommunityStats,
    ComplaintCreate,
    ComplaintResponse,
    ComplaintUpdate,
    DustbinCreate,
    DustbinResponse,
    DustbinUpdate,
    EmployeeDashboard,
    IncidentCreate,
    IncidentResponse,
    IncidentRewardRequest,
    IncidentRewardResponse,
    IncidentUpdate,
    LatestDisposalImage,
    LoginRequest,
    MessageResponse,
    PhotoResponse,
    ReconcileResponse,
    RepairEstimate,
    ReportCreate,
    ReportCreated,
    ReportListResponse,
    ReportResponse,
    ReportStatusUpdate,
    RewardsSummary,
    SignupRequest,
    UserEnvelope,
    UserUpdate,
    WithdrawRequest,
)
from services import auth, complaints, dashboard, dustbins, incidents, reports, rewards, users
from services.auth import get_current_user, require_collector, require_employee
from services.errors import ServiceError

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create database tables
Base.metadata.create_all(bind=engine)

# Initialize FastAPI application
app = FastAPI(
    title="EcoWaste API",
    description="API connecting waste collectors and municipal employees: report verification, "
                "rewards accounting and withdrawals, dustbins, incidents and complaints",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS middleware (explicit origins required when allow_credentials=True)
CORS_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
if os.environ.get("FRONTEND_ORIGIN"):
    CORS_ORIGINS.append(os.environ["FRONTEND_ORIGIN"].strip())
_extra_origins = os.environ.get("CORS_ORIGINS", "")
if _extra_origins:
    CORS_ORIGINS.extend(o.strip() for o in _extra_origins.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


# ============== Error Handling ==============

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """Render service errors with the same body shape as HTTPException."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ============== Health Check ==============

@app.get("/", tags=["Health"])
def health_check():
    """Health check endpoint to verify API is running."""
    return {"status": "ok", "service": "EcoWaste Backend", "db": engine.dialect.name}


@app.get("/api/health/db", tags=["Health"])
def database_health(db: Session = Depends(get_db)):
    """Check that the database answers a trivial query."""
    try:
        db.execute(text("SELECT 1"))
        connected = True
    except Exception:
        logger.exception("Database health check failed")
        connected = False
    return {"source": engine.dialect.name, "connected": connected}


# ============== Auth Endpoints ==============

@app.post("/api/auth/signup", response_model=AuthResponse, tags=["Auth"])
def signup(payload: SignupRequest, db: Session = Depends(get_db)):
    """
    Create a collector account (or an employee account when role is "employee").

    Returns:
        Access token and the new user's profile
    """
    user = auth.signup(
        db,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=payload.role.value if payload.role else None,
    )
    return {"token": auth.create_token(user), "user": users.serialize_user(user)}


@app.post("/api/auth/login", response_model=AuthResponse, tags=["Auth"])
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    """
    Exchange email and password for an access token.

    If a role is sent, the login fails unless the account has that role.
    """
    user = auth.login(
        db,
        email=payload.email,
        password=payload.password,
        role=payload.role.value if payload.role else None,
    )
    return {"token": auth.create_token(user), "user": users.serialize_user(user)}


@app.post("/api/auth/logout", tags=["Auth"])
def logout(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Invalidate all tokens issued to the current user."""
    auth.logout(db, user)
    return {"success": True}


# ============== User Endpoints ==============

@app.get("/api/users/me", response_model=UserEnvelope, tags=["Users"])
def get_me(user: User = Depends(get_current_user)):
    """Profile, settings and balance counters of the current user."""
    return {"user": users.serialize_user(user)}


@app.put("/api/users/me", response_model=UserEnvelope, tags=["Users"])
def update_me(
    payload: UserUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Update the current user's name, profile and settings.

    Profile fields not sent are kept. Each settings section sent
    (notifications, privacy, preferences, ...) replaces the stored section.
    """
    profile = payload.profile.model_dump(exclude_unset=True) if payload.profile else None
    settings = payload.settings.model_dump(by_alias=True, exclude_unset=True) if payload.settings else None
    user = users.update_profile(db, user, name=payload.name, profile=profile, settings=settings)
    return {"user": users.serialize_user(user)}


# ============== Rewards Endpoints ==============

@app.get("/api/rewards/summary", response_model=RewardsSummary, tags=["Rewards"])
def get_rewards_summary(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Balance snapshot of the current user.

    Returns:
        Lifetime, available and withdrawn points (and rupees), pending report
        count, conversion rates and the 10 most recent transactions
    """
    return rewards.build_summary(db, user.email)


@app.post("/api/rewards/withdraw", response_model=RewardsSummary, tags=["Rewards"])
def withdraw_rewards(
    payload: WithdrawRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Withdraw points from the current user's available balance.

    Send either amountPoints or amountRupees; the other is derived from the
    fixed conversion rate.

    Returns:
        The updated balance snapshot
    """
    return rewards.withdraw(
        db,
        user.email,
        amount_points=payload.amount_points,
        amount_rupees=payload.amount_rupees,
        payment_method=payload.payment_method.value,
        payment_details=payload.payment_details,
    )


@app.get("/api/rewards/reconcile", response_model=ReconcileResponse, tags=["Rewards"])
def reconcile_rewards(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Compare the current user's withdrawn_points counter with the withdrawal ledger."""
    return rewards.reconcile_withdrawn_points(db, user.email)


# ============== Report Endpoints ==============

@app.post(
    "/api/reports",
    response_model=ReportCreated,
    status_code=status.HTTP_201_CREATED,
    tags=["Reports"]
)
def create_report(
    payload: ReportCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Submit a waste-collection report for review.

    If a dustbin is linked, the distance between the disposal location and the
    dustbin is stored with the report.
    """
    report = reports.create_report(db, user, payload.model_dump())
    return {"id": report.id, "points": report.points}


@app.get("/api/reports", response_model=ReportListResponse, tags=["Reports"])
def list_reports(
    scope: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    List reports, most recent first, without images.

    Args:
        scope: "collector" to list only the current user's reports
        page: 1-based page number
        limit: Page size
    """
    collector_email = user.email if scope == "collector" else None
    return reports.list_reports(db, collector_email=collector_email, page=page, limit=limit)


@app.get("/api/reports/latest-disposal-image", response_model=LatestDisposalImage, tags=["Reports"])
def get_latest_disposal_image(
    dustbin_id: int = Query(..., alias="dustbinId"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Disposal photo of the most recent report submitted against a dustbin."""
    report = reports.latest_disposal_image(db, dustbin_id)
    analysis = report.ai_analysis
    return {
        "disposal_image_base64": report.disposal_image_base64,
        "submitted_at": report.submitted_at,
        "nearest_dustbin": analysis["nearest_dustbin"] if analysis else None,
    }


@app.get("/api/reports/{report_id}", response_model=ReportResponse, tags=["Reports"])
def get_report(report_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Retrieve a single report including its images."""
    return reports.get_report(db, report_id)


@app.patch("/api/reports/{report_id}", response_model=ReportResponse, tags=["Reports"])
def review_report(
    report_id: int,
    review: ReportStatusUpdate,
    employee: User = Depends(require_employee),
    db: Session = Depends(get_db)
):
    """
    Approve or reject a pending report (employees only).

    Approval stores the awarded points, derives the waste weight when it was
    not reported, and rolls the linked dustbin's photo forward.

    Raises:
        ServiceError: 400 on invalid status/points, 404 if the report is
            missing, 409 if it was already reviewed
    """
    return reports.update_report_status(
        db,
        report_id,
        review.status,
        points=review.points,
        verification_comment=review.verification_comment,
        verified_by=review.verified_by if review.verified_by is not None else employee.email,
    )


# ============== Dustbin Endpoints ==============

@app.get("/api/dustbins", response_model=List[DustbinResponse], tags=["Dustbins"])
def list_dustbins(
    status: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List dustbins, most recently updated first, optionally filtered by status."""
    return dustbins.list_dustbins(db, status)


@app.get("/api/dustbins/{dustbin_id}", response_model=DustbinResponse, tags=["Dustbins"])
def get_dustbin(dustbin_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return dustbins.get_dustbin(db, dustbin_id)


@app.post(
    "/api/dustbins",
    response_model=DustbinResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Dustbins"]
)
def create_dustbin(
    payload: DustbinCreate,
    employee: User = Depends(require_employee),
    db: Session = Depends(get_db)
):
    """Register a new dustbin (employees only)."""
    return dustbins.create_dustbin(db, employee, payload.model_dump(exclude_unset=True))


@app.patch("/api/dustbins/{dustbin_id}", response_model=DustbinResponse, tags=["Dustbins"])
def update_dustbin(
    dustbin_id: int,
    payload: DustbinUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Update a dustbin. Employees may change any field; collectors may only
    flag it as urgent.
    """
    return dustbins.update_dustbin(db, dustbin_id, user, payload.model_dump(exclude_unset=True))


# ============== Incident Endpoints ==============

@app.get("/api/incidents", response_model=List[IncidentResponse], tags=["Incidents"])
def list_incidents(
    status: Optional[str] = None,
    urgency: Optional[str] = None,
    category: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List incidents; collectors only see the ones they reported."""
    return incidents.list_incidents(db, user, status=status, urgency=urgency, category=category)


@app.post(
    "/api/incidents",
    response_model=IncidentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Incidents"]
)
def create_incident(
    payload: IncidentCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Report a new incident (pothole, hazard, ...)."""
    return incidents.create_incident(db, user, payload.model_dump())


@app.patch("/api/incidents/{incident_id}", response_model=IncidentResponse, tags=["Incidents"])
def update_incident(
    incident_id: int,
    payload: IncidentUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update an incident. Non-employees may only edit notes."""
    return incidents.update_incident(db, incident_id, user, payload.model_dump(exclude_unset=True))


@app.post(
    "/api/incidents/{incident_id}/reward",
    response_model=IncidentRewardResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Incidents"]
)
def reward_incident(
    incident_id: int,
    payload: IncidentRewardRequest,
    employee: User = Depends(require_employee),
    db: Session = Depends(get_db)
):
    """
    Award points to the reporter of a resolved incident (employees only, once per incident).

    Raises:
        ServiceError: 400 on non-positive points, 404 if the incident or
            reporter is missing, 409 if not resolved or already rewarded
    """
    return incidents.award_incident_reward(db, incident_id, payload.points, payload.note or "")


@app.post(
    "/api/incidents/{incident_id}/estimate-repair",
    response_model=RepairEstimate,
    tags=["Incidents"]
)
def estimate_incident_repair(
    incident_id: int,
    employee: User = Depends(require_employee),
    db: Session = Depends(get_db)
):
    """Rough repair cost estimate for a pothole incident (employees only)."""
    return incidents.estimate_repair(incidents.get_incident(db, incident_id))


# ============== Complaint Endpoints ==============

@app.post(
    "/api/complaints",
    response_model=ComplaintResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Complaints"]
)
def create_complaint(
    payload: ComplaintCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """File a complaint, suggestion or issue."""
    return complaints.create_complaint(db, user, payload.model_dump())


@app.get("/api/complaints", response_model=List[ComplaintResponse], tags=["Complaints"])
def list_complaints(
    type: Optional[str] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List complaints; collectors only see their own."""
    return complaints.list_complaints(db, user, type=type, status=status, priority=priority)


@app.get("/api/complaints/{complaint_id}", response_model=ComplaintResponse, tags=["Complaints"])
def get_complaint(complaint_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return complaints.get_complaint(db, complaint_id, user)


@app.patch("/api/complaints/{complaint_id}", response_model=ComplaintResponse, tags=["Complaints"])
def update_complaint(
    complaint_id: int,
    payload: ComplaintUpdate,
    employee: User = Depends(require_employee),
    db: Session = Depends(get_db)
):
    """Triage a complaint (employees only)."""
    return complaints.update_complaint(db, complaint_id, employee, payload.model_dump(exclude_unset=True))


@app.delete("/api/complaints/{complaint_id}", response_model=MessageResponse, tags=["Complaints"])
def delete_complaint(
    complaint_id: int,
    employee: User = Depends(require_employee),
    db: Session = Depends(get_db)
):
    complaints.delete_complaint(db, complaint_id)
    return MessageResponse(message="Complaint deleted successfully")


# ============== Dashboard Endpoints ==============

@app.get("/api/dashboard/collector", response_model=CollectorDashboard, tags=["Dashboard"])
def get_collector_dashboard(user: User = Depends(require_collector), db: Session = Depends(get_db)):
    """Balances, monthly goal progress and recent activity for the current collector."""
    return dashboard.collector_dashboard(db, user)


@app.get("/api/dashboard/employee", response_model=EmployeeDashboard, tags=["Dashboard"])
def get_employee_dashboard(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Review queue, per-collector totals, complaint counts and dustbin fleet status."""
    return dashboard.employee_dashboard(db)


@app.get("/api/dashboard/community", response_model=CommunityStats, tags=["Dashboard"])
def get_community_stats(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Community totals and the collector leaderboard."""
    return dashboard.community_stats(db)


# ============== Upload Endpoints ==============

@app.post("/api/upload", response_model=MessageResponse, tags=["Uploads"])
async def upload_photo(photo: UploadFile = File(...), db: Session = Depends(get_db)):
    """
    Store an uploaded photo inline as base64.

    Args:
        photo: Image file
        db: Database session (injected)
    """
    content = await photo.read()
    if not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file uploaded"
        )

    db_photo = Photo(
        filename=photo.filename,
        content_type=photo.content_type,
        image_base64=base64.b64encode(content).decode("ascii"),
    )
    db.add(db_photo)
    db.commit()
    db.refresh(db_photo)

    return MessageResponse(message="Photo uploaded successfully!", data={"id": db_photo.id})


@app.get("/api/photos", response_model=List[PhotoResponse], tags=["Uploads"])
def list_photos(db: Session = Depends(get_db)):
    """All uploaded photos, newest first."""
    return db.query(Photo).order_by(Photo.uploaded_at.desc(), Photo.id.desc()).all()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
