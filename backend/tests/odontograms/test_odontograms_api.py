from sqlalchemy import select

from dental_ledger.models.audit_log import AuditLog


def test_create_odontogram_initialises_32_healthy_teeth(odontogram, patient):
    assert odontogram["patient_id"] == patient["id"]
    assert odontogram["patient_name"] == "Paula Gomez"
    assert odontogram["is_current"] is True
    assert odontogram["version"] == 1
    teeth = odontogram["teeth"]
    assert [tooth["tooth_number"] for tooth in teeth] == list(range(1, 33))
    assert {tooth["condition"] for tooth in teeth} == {"healthy"}
    assert all(tooth["surfaces"] == [] for tooth in teeth)
    by_number = {tooth["tooth_number"]: tooth for tooth in teeth}
    assert by_number[1]["tooth_type"] == "molar"
    assert by_number[8]["tooth_type"] == "incisor"
    assert by_number[27]["tooth_type"] == "canine"


def test_second_current_odontogram_is_rejected(api_client, auth_headers, patient, odontogram):
    response = api_client.post(f"/patients/{patient['id']}/odontograms", headers=auth_headers, json={})
    assert response.status_code == 409
    assert response.json()["code"] == "DuplicateActiveOdontogram"
    assert response.json()["retryable"] is False


def test_supersede_keeps_history_read_only(api_client, auth_headers, patient, odontogram, tooth_id):
    response = api_client.post(
        f"/patients/{patient['id']}/odontograms",
        headers=auth_headers,
        json={"supersede_current": True, "notes": "annual review"},
    )
    assert response.status_code == 201, response.text
    replacement = response.json()
    assert replacement["id"] != odontogram["id"]

    current = api_client.get(f"/patients/{patient['id']}/odontograms/current", headers=auth_headers)
    assert current.json()["id"] == replacement["id"]

    history = api_client.get(f"/patients/{patient['id']}/odontograms", headers=auth_headers).json()
    assert [item["id"] for item in history] == [replacement["id"], odontogram["id"]]
    assert history[1]["is_current"] is False
    assert history[1]["superseded_at"] is not None

    stale = api_client.put(
        f"/odontograms/teeth/{tooth_id(odontogram, 3)}",
        headers=auth_headers,
        json={"condition": "caries", "expected_version": history[1]["version"]},
    )
    assert stale.status_code == 409
    assert stale.json()["code"] == "InvalidState"


def test_unknown_patient_is_not_found(api_client, auth_headers):
    response = api_client.get("/patients/999/odontograms/current", headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["code"] == "NotFound"


def test_update_tooth_bumps_version(api_client, auth_headers, odontogram, tooth_id):
    response = api_client.put(
        f"/odontograms/teeth/{tooth_id(odontogram, 14)}",
        headers=auth_headers,
        json={"condition": "caries", "expected_version": 1, "notes": "distal lesion"},
    )
    assert response.status_code == 200, response.text
    tooth = response.json()
    assert tooth["condition"] == "caries"
    assert tooth["notes"] == "distal lesion"
    assert tooth["odontogram_version"] == 2

    chart = api_client.get(f"/odontograms/{odontogram['id']}", headers=auth_headers).json()
    assert chart["version"] == 2
    others = [t for t in chart["teeth"] if t["tooth_number"] != 14]
    assert {t["condition"] for t in others} == {"healthy"}


def test_stale_version_is_a_retryable_conflict(api_client, auth_headers, odontogram, tooth_id):
    first = api_client.put(
        f"/odontograms/teeth/{tooth_id(odontogram, 3)}",
        headers=auth_headers,
        json={"condition": "filled", "expected_version": 1},
    )
    assert first.status_code == 200, first.text

    second = api_client.put(
        f"/odontograms/teeth/{tooth_id(odontogram, 5)}",
        headers=auth_headers,
        json={"condition": "caries", "expected_version": 1},
    )
    assert second.status_code == 409
    assert second.json()["code"] == "ConcurrentModification"
    assert second.json()["retryable"] is True

    chart = api_client.get(f"/odontograms/{odontogram['id']}", headers=auth_headers).json()
    tooth_5 = next(t for t in chart["teeth"] if t["tooth_number"] == 5)
    assert tooth_5["condition"] == "healthy"


def test_absent_tooth_cannot_change_condition(api_client, auth_headers, odontogram, tooth_id):
    tooth = tooth_id(odontogram, 1)
    extracted = api_client.put(
        f"/odontograms/teeth/{tooth}",
        headers=auth_headers,
        json={"condition": "extracted", "expected_version": 1},
    )
    assert extracted.status_code == 200, extracted.text
    assert extracted.json()["is_present"] is False

    revived = api_client.put(
        f"/odontograms/teeth/{tooth}",
        headers=auth_headers,
        json={"condition": "healthy", "expected_version": 2},
    )
    assert revived.status_code == 409
    assert revived.json()["code"] == "InvalidState"

    surface = api_client.post(
        f"/odontograms/teeth/{tooth}/surfaces",
        headers=auth_headers,
        json={"surface": "occlusal", "condition": "caries", "expected_version": 2},
    )
    assert surface.status_code == 409


def test_add_surface_and_duplicate_handling(api_client, auth_headers, odontogram, tooth_id, db_session):
    tooth = tooth_id(odontogram, 19)
    added = api_client.post(
        f"/odontograms/teeth/{tooth}/surfaces",
        headers=auth_headers,
        json={"surface": "occlusal", "condition": "caries", "expected_version": 1},
    )
    assert added.status_code == 201, added.text
    surfaces = added.json()["surfaces"]
    assert [(s["surface"], s["condition"]) for s in surfaces] == [("occlusal", "caries")]
    assert added.json()["odontogram_version"] == 2

    duplicate = api_client.post(
        f"/odontograms/teeth/{tooth}/surfaces",
        headers=auth_headers,
        json={"surface": "occlusal", "condition": "filled", "expected_version": 2},
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "DuplicateSurface"

    superseded = api_client.post(
        f"/odontograms/teeth/{tooth}/surfaces",
        headers=auth_headers,
        json={
            "surface": "occlusal",
            "condition": "filled",
            "expected_version": 2,
            "supersede": True,
        },
    )
    assert superseded.status_code == 201, superseded.text
    surfaces = superseded.json()["surfaces"]
    assert [(s["surface"], s["condition"]) for s in surfaces] == [("occlusal", "filled")]

    entry = db_session.scalar(
        select(AuditLog).where(AuditLog.action == "odontogram.surface_superseded")
    )
    assert entry is not None
    assert entry.before_json["condition"] == "caries"
    assert entry.after_json["condition"] == "filled"


def test_surface_cannot_be_marked_missing(api_client, auth_headers, odontogram, tooth_id):
    response = api_client.post(
        f"/odontograms/teeth/{tooth_id(odontogram, 19)}/surfaces",
        headers=auth_headers,
        json={"surface": "mesial", "condition": "missing", "expected_version": 1},
    )
    assert response.status_code == 422
    assert response.json()["code"] == "ValidationError"


def test_reception_cannot_chart(api_client, reception_headers, odontogram, tooth_id):
    response = api_client.put(
        f"/odontograms/teeth/{tooth_id(odontogram, 14)}",
        headers=reception_headers,
        json={"condition": "caries", "expected_version": 1},
    )
    assert response.status_code == 403
