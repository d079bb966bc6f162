import pytest

from models import IncidentReward
from services import incidents, rewards
from services.errors import InvalidState, NotFound, ValidationError


def test_reward_resolved_incident(db, collector, make_incident):
    incident = make_incident(collector, status="resolved")

    reward = incidents.award_incident_reward(db, incident.id, 50, note="Reported a pothole")

    assert reward.points == 50
    assert reward.user_id == collector.id
    db.refresh(incident)
    assert incident.rewarded is True
    summary = rewards.build_summary(db, collector.email)
    assert summary["lifetime_incident_points"] == 50
    assert summary["available_points"] == 50


def test_reward_is_granted_once(db, collector, make_incident):
    incident = make_incident(collector, status="resolved")
    incidents.award_incident_reward(db, incident.id, 50)

    with pytest.raises(InvalidState) as excinfo:
        incidents.award_incident_reward(db, incident.id, 50)

    assert excinfo.value.message == "Points already awarded for this incident"
    assert db.query(IncidentReward).filter(IncidentReward.incident_id == incident.id).count() == 1
    assert rewards.build_summary(db, collector.email)["lifetime_points"] == 50


@pytest.mark.parametrize("status", ["reported", "acknowledged", "in_progress", "dismissed"])
def test_reward_requires_resolved(db, collector, make_incident, status):
    incident = make_incident(collector, status=status)

    with pytest.raises(InvalidState):
        incidents.award_incident_reward(db, incident.id, 50)

    assert db.query(IncidentReward).count() == 0
    db.refresh(incident)
    assert incident.rewarded is False


@pytest.mark.parametrize("points", [0, -10, None])
def test_reward_requires_positive_points(db, collector, make_incident, points):
    incident = make_incident(collector, status="resolved")

    with pytest.raises(ValidationError):
        incidents.award_incident_reward(db, incident.id, points)


def test_reward_rejects_fractional_points(db, collector, make_incident):
    incident = make_incident(collector, status="resolved")

    with pytest.raises(ValidationError):
        incidents.award_incident_reward(db, incident.id, 12.5)


@pytest.mark.parametrize("points", [1e20, 2**31, float("inf"), float("nan")])
def test_reward_rejects_points_beyond_column_range(db, collector, make_incident, points):
    incident = make_incident(collector, status="resolved")

    with pytest.raises(ValidationError):
        incidents.award_incident_reward(db, incident.id, points)

    assert db.query(IncidentReward).count() == 0
    db.refresh(incident)
    assert incident.rewarded is False


def test_reward_without_reporter(db, make_incident):
    incident = make_incident(None, status="resolved")

    with pytest.raises(NotFound):
        incidents.award_incident_reward(db, incident.id, 50)


def test_reward_missing_incident(db):
    with pytest.raises(NotFound):
        incidents.award_incident_reward(db, 12345, 50)


def test_create_incident_validates(db, collector):
    with pytest.raises(ValidationError):
        incidents.create_incident(db, collector, {"category": "pothole", "image_base64": "img"})
    with pytest.raises(ValidationError):
        incidents.create_incident(db, collector, {
            "category": "alien_landing",
            "coordinates": {"lat": 1.0, "lng": 2.0},
            "image_base64": "img",
        })

    incident = incidents.create_incident(db, collector, {
        "category": "tree_break",
        "coordinates": {"lat": 12.97, "lng": 77.59},
        "image_base64": "img",
    })
    assert incident.status == "reported"
    assert incident.urgency == "medium"
    assert incident.rewarded is False


def test_collectors_only_list_their_own(db, collector, other_collector, employee, make_incident):
    make_incident(collector)
    make_incident(other_collector, category="accident")

    assert len(incidents.list_incidents(db, collector)) == 1
    assert len(incidents.list_incidents(db, employee)) == 2
    assert len(incidents.list_incidents(db, employee, category="accident")) == 1
    assert len(incidents.list_incidents(db, employee, status="all")) == 2


def test_non_employee_can_only_edit_notes(db, collector, make_incident):
    incident = make_incident(collector)

    updated = incidents.update_incident(db, incident.id, collector, {"status": "resolved", "notes": "Still there"})

    assert updated.status == "reported"
    assert updated.notes == "Still there"


def test_employee_updates_workflow(db, collector, employee, make_incident):
    incident = make_incident(collector)

    updated = incidents.update_incident(db, incident.id, employee, {
        "status": "resolved",
        "assigned_to_id": employee.id,
        "coordinates": {"lat": 13.0, "lng": 77.6},
    })

    assert updated.status == "resolved"
    assert updated.assigned_to_id == employee.id
    assert updated.lat == 13.0

    with pytest.raises(ValidationError):
        incidents.update_incident(db, incident.id, employee, {"status": "closed"})


def test_estimate_repair_for_pothole(db, collector, make_incident):
    incident = make_incident(collector, urgency="high")

    estimate = incidents.estimate_repair(incident)

    assert 6000 <= estimate["estimated_cost"] <= 15000
    assert estimate["currency"] == "INR"


def test_estimate_repair_only_for_potholes(db, collector, make_incident):
    incident = make_incident(collector, category="dead_animal")

    with pytest.raises(ValidationError):
        incidents.estimate_repair(incident)


# ============== API ==============

def test_report_incident_endpoint(client, collector, headers_for):
    response = client.post(
        "/api/incidents",
        json={"category": "pothole", "coordinates": {"lat": 12.97, "lng": 77.59},
              "imageBase64": "img", "urgency": "high"},
        headers=headers_for(collector),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["reporter"] == collector.id
    assert body["status"] == "reported"
    assert body["rewarded"] is False


def test_reward_endpoint(client, collector, employee, make_incident, headers_for):
    incident = make_incident(collector, status="resolved")

    forbidden = client.post(f"/api/incidents/{incident.id}/reward", json={"points": 50},
                            headers=headers_for(collector))
    assert forbidden.status_code == 403

    granted = client.post(f"/api/incidents/{incident.id}/reward", json={"points": 50, "note": "Thanks"},
                          headers=headers_for(employee))
    assert granted.status_code == 201
    assert granted.json()["points"] == 50

    repeated = client.post(f"/api/incidents/{incident.id}/reward", json={"points": 50},
                           headers=headers_for(employee))
    assert repeated.status_code == 409

    summary = client.get("/api/rewards/summary", headers=headers_for(collector)).json()
    assert summary["lifetimeIncidentPoints"] == 50


def test_reward_endpoint_rejects_huge_points(client, collector, employee, make_incident, headers_for):
    incident = make_incident(collector, status="resolved")

    response = client.post(f"/api/incidents/{incident.id}/reward", json={"points": 1e20},
                           headers=headers_for(employee))

    assert response.status_code == 400
    assert response.json() == {"detail": "Points out of range"}


def test_assign_incident_endpoint(client, collector, employee, make_incident, headers_for):
    incident = make_incident(collector)

    response = client.patch(
        f"/api/incidents/{incident.id}",
        json={"status": "in_progress", "assignedTo": employee.id},
        headers=headers_for(employee),
    )

    assert response.status_code == 200
    assert response.json()["assignedTo"] == employee.id
    assert response.json()["status"] == "in_progress"


def test_estimate_endpoint(client, collector, employee, make_incident, headers_for):
    incident = make_incident(collector, urgency="low")

    response = client.post(f"/api/incidents/{incident.id}/estimate-repair", headers=headers_for(employee))

    assert response.status_code == 200
    assert 1500 <= response.json()["estimatedCost"] <= 4000
