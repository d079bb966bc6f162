from datetime import datetime

import pytest

from models import IncidentReward
from services import dashboard, rewards


def test_shift_month_wraps_years():
    assert dashboard._shift_month(datetime(2024, 1, 15), -1) == datetime(2023, 12, 1)
    assert dashboard._shift_month(datetime(2024, 12, 3), 1) == datetime(2025, 1, 1)
    assert dashboard._shift_month(datetime(2024, 6, 30), -5) == datetime(2024, 1, 1)


def test_collector_dashboard_agrees_with_summary(db, collector, make_report, make_incident):
    make_report(collector, status="approved", points=120, waste_weight_kg=3.0)
    make_report(collector, status="approved", points=60)
    make_report(collector, status="pending")
    make_report(collector, status="rejected")
    incident = make_incident(collector, status="resolved", rewarded=True)
    db.add(IncidentReward(user_id=collector.id, incident_id=incident.id, points=50))
    db.commit()
    rewards.withdraw(db, collector.email, amount_points=30)

    data = dashboard.collector_dashboard(db, collector)
    summary = rewards.build_summary(db, collector.email)

    assert data["summary"]["lifetime_points"] == summary["lifetime_points"] == 230
    assert data["summary"]["available_points"] == summary["available_points"] == 200
    assert data["summary"]["approved_reports"] == 2
    assert data["summary"]["pending_reports"] == 1
    assert data["summary"]["rejected_reports"] == 1
    assert data["monthly_progress"]["reports_this_month"] == 2
    assert data["monthly_progress"]["points_this_month"] == 180
    assert data["waste_collected_kg"] == pytest.approx(3.0 + 6.0)
    assert len(data["series"]) == dashboard.SERIES_MONTHS
    assert data["series"][-1]["points"] == 180
    assert len(data["recent_activity"]) == 4
    assert data["incidents"]["recent_rewards"][0]["points"] == 50


def test_employee_dashboard_counts(db, collector, make_report, make_dustbin):
    make_report(collector, status="approved", points=100)
    make_report(collector, status="pending")
    make_dustbin(status="full", fill_level=90, urgent=True)
    make_dustbin(name="Park Bin", fill_level=10)

    data = dashboard.employee_dashboard(db)

    assert data["reports"]["pending_count"] == 1
    assert data["reports"]["approved_total"] == 1
    assert data["reports"]["total_reports"] == 2
    assert data["collectors"]["active_collectors"] == 1
    assert data["collectors"]["stats"][0]["total_points"] == 100
    assert data["dustbins"] == {
        "total": 2, "active": 1, "full": 1, "maintenance": 0, "urgent": 1, "average_fill": 50,
    }


def test_community_leaderboard(db, collector, other_collector, make_report):
    make_report(collector, status="approved", points=40)
    make_report(other_collector, status="approved", points=90)
    make_report(other_collector, status="rejected", points=500)

    data = dashboard.community_stats(db)

    assert [entry["email"] for entry in data["leaderboard"]] == [other_collector.email, collector.email]
    assert data["stats"]["total_points"] == 130
    assert data["stats"]["total_members"] == 2
    assert data["stats"]["co2_saved_kg"] == pytest.approx(13.0 * dashboard.CO2_PER_KG)


# ============== API ==============

def test_collector_dashboard_endpoint(client, collector, employee, headers_for):
    response = client.get("/api/dashboard/collector", headers=headers_for(collector))
    assert response.status_code == 200
    assert response.json()["monthlyProgress"]["monthlyGoalReports"] == dashboard.MONTHLY_REPORT_GOAL

    assert client.get("/api/dashboard/collector", headers=headers_for(employee)).status_code == 403


def test_employee_and_community_endpoints(client, employee, headers_for):
    employee_view = client.get("/api/dashboard/employee", headers=headers_for(employee))
    assert employee_view.status_code == 200
    assert employee_view.json()["dustbins"]["total"] == 0

    community = client.get("/api/dashboard/community", headers=headers_for(employee))
    assert community.status_code == 200
    assert community.json()["leaderboard"] == []
