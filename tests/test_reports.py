import pytest

from models import Dustbin, Report
from services import reports, rewards
from services.errors import InvalidState, NotFound, ValidationError
from services.geo import distance_meters

PICKUP = {"lat": 12.9721, "lng": 77.5950}
DISPOSAL = {"lat": 12.9716, "lng": 77.5946}


def _payload(**overrides):
    payload = {
        "pickup_image_base64": "pickup",
        "pickup_location": dict(PICKUP),
        "disposal_image_base64": "disposal",
        "disposal_location": dict(DISPOSAL),
    }
    payload.update(overrides)
    return payload


def test_create_report_is_pending_with_zero_points(db, collector):
    report = reports.create_report(db, collector, _payload())

    assert report.status == "pending"
    assert report.points == 0
    assert report.collector_email == collector.email
    assert report.ai_analysis is None


def test_create_report_requires_images_and_locations(db, collector):
    with pytest.raises(ValidationError):
        reports.create_report(db, collector, _payload(disposal_image_base64=None))
    assert db.query(Report).count() == 0


def test_create_report_records_distance_to_dustbin(db, collector, make_dustbin):
    dustbin = make_dustbin(lat=12.9730, lng=77.5960)

    report = reports.create_report(db, collector, _payload(dustbin_id=dustbin.id))

    expected = distance_meters(DISPOSAL["lat"], DISPOSAL["lng"], 12.9730, 77.5960)
    assert report.disposal_distance == pytest.approx(expected)
    assert report.ai_analysis["nearest_dustbin"]["name"] == dustbin.name


def test_create_report_with_unknown_dustbin_still_stored(db, collector):
    report = reports.create_report(db, collector, _payload(dustbin_id=999))

    assert report.id is not None
    assert report.disposal_distance is None


def test_approve_report_credits_points(db, collector, make_report):
    report = make_report(collector)

    updated = reports.update_report_status(db, report.id, "approved", points=150, verified_by="Officer")

    assert updated.status == "approved"
    assert updated.points == 150
    assert updated.verified_by == "Officer"
    assert updated.waste_weight_kg == pytest.approx(15.0)
    assert rewards.build_summary(db, collector.email)["available_points"] == 150


def test_approve_keeps_reported_weight(db, collector, make_report):
    report = make_report(collector, waste_weight_kg=4.2)

    updated = reports.update_report_status(db, report.id, "approved", points=150)

    assert updated.waste_weight_kg == pytest.approx(4.2)


def test_reject_ignores_points(db, collector, make_report):
    report = make_report(collector)

    updated = reports.update_report_status(db, report.id, "rejected", points=80, verification_comment="Blurry")

    assert updated.status == "rejected"
    assert updated.points == 0
    assert updated.verification_comment == "Blurry"
    assert rewards.build_summary(db, collector.email)["lifetime_points"] == 0


@pytest.mark.parametrize("first", ["approved", "rejected"])
def test_reviewed_report_is_terminal(db, collector, make_report, first):
    report = make_report(collector)
    reports.update_report_status(db, report.id, first, points=10)

    with pytest.raises(InvalidState) as excinfo:
        reports.update_report_status(db, report.id, "approved", points=500)

    assert excinfo.value.message == f"Report has already been {first}"
    assert db.query(Report).filter(Report.id == report.id).one().status == first


def test_review_rejects_unknown_status(db, collector, make_report):
    report = make_report(collector)

    with pytest.raises(ValidationError):
        reports.update_report_status(db, report.id, "pending")
    with pytest.raises(ValidationError):
        reports.update_report_status(db, report.id, "approved", points=-1)


def test_review_rejects_points_beyond_column_range(db, collector, make_report):
    report = make_report(collector)

    with pytest.raises(ValidationError):
        reports.update_report_status(db, report.id, "approved", points=10**12)

    assert db.query(Report).filter(Report.id == report.id).one().status == "pending"
    assert rewards.build_summary(db, collector.email)["lifetime_points"] == 0


def test_review_missing_report(db):
    with pytest.raises(NotFound):
        reports.update_report_status(db, 404, "approved", points=10)


def test_photo_history_keeps_last_twenty(db, collector, make_dustbin, make_report):
    dustbin = make_dustbin(photo="D0")

    for i in range(1, 26):
        report = make_report(collector, dustbin=dustbin, disposal_image=f"D{i}")
        reports.update_report_status(db, report.id, "approved", points=10)

    dustbin = db.query(Dustbin).filter(Dustbin.id == dustbin.id).one()
    assert dustbin.photo_base64 == "D25"
    assert dustbin.initial_photo_base64 == "D0"
    assert [p.photo for p in dustbin.photo_history] == [f"D{i}" for i in range(5, 25)]


def test_rejection_leaves_dustbin_photo(db, collector, make_dustbin, make_report):
    dustbin = make_dustbin(photo="D0")
    report = make_report(collector, dustbin=dustbin, disposal_image="D1")

    reports.update_report_status(db, report.id, "rejected")

    db.refresh(dustbin)
    assert dustbin.photo_base64 == "D0"
    assert dustbin.photo_history == []


def test_list_reports_paginates(db, collector, other_collector, make_report):
    for _ in range(3):
        make_report(collector)
    make_report(other_collector)

    page = reports.list_reports(db, collector_email=collector.email, page=1, limit=2)

    assert page["total"] == 3
    assert page["total_pages"] == 2
    assert len(page["reports"]) == 2
    assert reports.list_reports(db)["total"] == 4


def test_infer_weight_from_points():
    assert reports.infer_weight_from_points(150) == pytest.approx(15.0)
    assert reports.infer_weight_from_points(0) == 0.0


# ============== API ==============

def test_submit_and_fetch_report(client, collector, make_dustbin, headers_for):
    dustbin = make_dustbin()
    body = {
        "pickupImageBase64": "pickup",
        "pickupLocation": PICKUP,
        "disposalImageBase64": "disposal",
        "disposalLocation": DISPOSAL,
        "dustbinId": dustbin.id,
    }

    created = client.post("/api/reports", json=body, headers=headers_for(collector))
    assert created.status_code == 201
    report_id = created.json()["id"]

    fetched = client.get(f"/api/reports/{report_id}", headers=headers_for(collector))
    assert fetched.status_code == 200
    data = fetched.json()
    assert data["status"] == "pending"
    assert data["aiAnalysis"]["disposalDistance"] == pytest.approx(0.0)
    assert data["disposalImageBase64"] == "disposal"


def test_list_endpoint_omits_images(client, collector, make_report, headers_for):
    make_report(collector)

    response = client.get("/api/reports?scope=collector", headers=headers_for(collector))

    assert response.status_code == 200
    item = response.json()["reports"][0]
    assert "pickupImageBase64" not in item
    assert item["collectorEmail"] == collector.email


def test_latest_disposal_image(client, collector, make_dustbin, make_report, headers_for):
    dustbin = make_dustbin()
    make_report(collector, dustbin=dustbin, disposal_image="first")
    make_report(collector, dustbin=dustbin, disposal_image="second")

    response = client.get(
        "/api/reports/latest-disposal-image",
        params={"dustbinId": dustbin.id},
        headers=headers_for(collector),
    )

    assert response.status_code == 200
    assert response.json()["disposalImageBase64"] == "second"

    missing = client.get(
        "/api/reports/latest-disposal-image",
        params={"dustbinId": 999},
        headers=headers_for(collector),
    )
    assert missing.status_code == 404


def test_review_requires_employee(client, collector, make_report, headers_for):
    report = make_report(collector)

    response = client.patch(
        f"/api/reports/{report.id}",
        json={"status": "approved", "points": 150},
        headers=headers_for(collector),
    )

    assert response.status_code == 403
    assert response.json() == {"detail": "Forbidden"}


def test_review_endpoint(client, collector, employee, make_report, headers_for):
    report = make_report(collector)

    response = client.patch(
        f"/api/reports/{report.id}",
        json={"status": "approved", "points": 150, "verificationComment": "Good work"},
        headers=headers_for(employee),
    )
    assert response.status_code == 200
    assert response.json()["points"] == 150
    assert response.json()["verifiedBy"] == employee.email

    again = client.patch(
        f"/api/reports/{report.id}",
        json={"status": "rejected"},
        headers=headers_for(employee),
    )
    assert again.status_code == 409


def test_review_endpoint_rejects_huge_points(client, collector, employee, make_report, headers_for):
    report = make_report(collector)

    response = client.patch(
        f"/api/reports/{report.id}",
        json={"status": "approved", "points": 10**12},
        headers=headers_for(employee),
    )

    assert response.status_code == 400
    assert response.json() == {"detail": "Points out of range"}
