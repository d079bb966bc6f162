import pytest

from services import complaints, dustbins
from services.errors import Forbidden, NotFound, ValidationError

LOCATION = {"lat": 12.9716, "lng": 77.5946}


def test_create_dustbin_keeps_initial_photo(db, employee):
    dustbin = dustbins.create_dustbin(db, employee, {
        "name": "Market Bin",
        "coordinates": LOCATION,
        "photo_base64": "first-photo",
        "fill_level": 140,
    })

    assert dustbin.initial_photo_base64 == "first-photo"
    assert dustbin.fill_level == 100
    assert dustbin.status == "active"
    assert dustbin.created_by == employee.id


def test_create_dustbin_requires_photo(db, employee):
    with pytest.raises(ValidationError):
        dustbins.create_dustbin(db, employee, {"name": "Bin", "coordinates": LOCATION})


def test_collector_can_only_flag_urgent(db, collector, make_dustbin):
    dustbin = make_dustbin()

    updated = dustbins.update_dustbin(db, dustbin.id, collector, {"urgent": True, "status": "inactive"})

    assert updated.urgent is True
    assert updated.status == "active"


def test_employee_updates_dustbin(db, employee, make_dustbin):
    dustbin = make_dustbin()

    updated = dustbins.update_dustbin(db, dustbin.id, employee, {"status": "full", "fill_level": -5})

    assert updated.status == "full"
    assert updated.fill_level == 0

    with pytest.raises(ValidationError):
        dustbins.update_dustbin(db, dustbin.id, employee, {"status": "exploded"})


def test_missing_dustbin(db):
    with pytest.raises(NotFound):
        dustbins.get_dustbin(db, 77)


def _complaint_payload(**overrides):
    payload = {
        "type": "complaint",
        "title": "Overflowing bin",
        "description": "The bin near the market has not been emptied",
        "location": dict(LOCATION),
        "citizen_name": "Ravi",
    }
    payload.update(overrides)
    return payload


def test_complaint_email_comes_from_session(db, collector):
    complaint = complaints.create_complaint(db, collector, _complaint_payload())

    assert complaint.citizen_email == collector.email
    assert complaint.status == "pending"
    assert complaint.priority == "medium"


def test_complaint_requires_fields(db, collector):
    with pytest.raises(ValidationError):
        complaints.create_complaint(db, collector, _complaint_payload(title=""))
    with pytest.raises(ValidationError):
        complaints.create_complaint(db, collector, _complaint_payload(type="rant"))


def test_complaint_visibility(db, collector, other_collector, employee):
    complaint = complaints.create_complaint(db, collector, _complaint_payload())

    assert complaints.get_complaint(db, complaint.id, collector).id == complaint.id
    assert complaints.get_complaint(db, complaint.id, employee).id == complaint.id
    with pytest.raises(Forbidden):
        complaints.get_complaint(db, complaint.id, other_collector)
    assert complaints.list_complaints(db, other_collector) == []
    assert len(complaints.list_complaints(db, employee)) == 1


def test_resolving_complaint_stamps_resolver(db, collector, employee):
    complaint = complaints.create_complaint(db, collector, _complaint_payload())

    updated = complaints.update_complaint(db, complaint.id, employee, {
        "status": "resolved",
        "resolution_comment": "Bin emptied",
    })

    assert updated.resolved_by_id == employee.id
    assert updated.resolved_at is not None
    assert updated.resolution_comment == "Bin emptied"


def test_delete_complaint(db, collector):
    complaint = complaints.create_complaint(db, collector, _complaint_payload())

    complaints.delete_complaint(db, complaint.id)

    with pytest.raises(NotFound):
        complaints.delete_complaint(db, complaint.id)


# ============== API ==============

def test_dustbin_endpoints(client, employee, collector, headers_for):
    created = client.post(
        "/api/dustbins",
        json={"name": "Park Bin", "coordinates": LOCATION, "photoBase64": "p", "capacityLiters": 120},
        headers=headers_for(employee),
    )
    assert created.status_code == 201
    dustbin_id = created.json()["id"]

    flagged = client.patch(f"/api/dustbins/{dustbin_id}", json={"urgent": True}, headers=headers_for(collector))
    assert flagged.status_code == 200
    assert flagged.json()["urgent"] is True

    listed = client.get("/api/dustbins", headers=headers_for(collector))
    assert [d["id"] for d in listed.json()] == [dustbin_id]
    assert listed.json()[0]["coordinates"] == LOCATION


def test_complaint_endpoints(client, collector, employee, headers_for):
    created = client.post(
        "/api/complaints",
        json={"type": "suggestion", "title": "More bins", "description": "Add bins near the park",
              "location": LOCATION, "citizenName": "Ravi", "priority": "high"},
        headers=headers_for(collector),
    )
    assert created.status_code == 201
    complaint_id = created.json()["id"]
    assert created.json()["citizenEmail"] == collector.email

    forbidden = client.patch(f"/api/complaints/{complaint_id}", json={"status": "resolved"},
                             headers=headers_for(collector))
    assert forbidden.status_code == 403

    resolved = client.patch(f"/api/complaints/{complaint_id}", json={"status": "resolved"},
                            headers=headers_for(employee))
    assert resolved.status_code == 200
    assert resolved.json()["resolvedBy"]["id"] == employee.id

    deleted = client.delete(f"/api/complaints/{complaint_id}", headers=headers_for(employee))
    assert deleted.status_code == 200
    assert client.get(f"/api/complaints/{complaint_id}", headers=headers_for(employee)).status_code == 404


def test_upload_and_list_photos(client):
    response = client.post("/api/upload", files={"photo": ("bin.png", b"\x89PNG fake", "image/png")})

    assert response.status_code == 200
    photos = client.get("/api/photos").json()
    assert len(photos) == 1
    assert photos[0]["filename"] == "bin.png"
    assert photos[0]["contentType"] == "image/png"
