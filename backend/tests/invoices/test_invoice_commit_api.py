from decimal import Decimal

from dental_ledger.deps import get_tax_configuration
from dental_ledger.main import app
from dental_ledger.services.tax import StaticTaxConfiguration


def test_reference_visit_preview_commit_and_empty_recommit(
    api_client, auth_headers, add_treatment, odontogram
):
    filling = add_treatment(odontogram, "D101", tooth=14)
    cleaning = add_treatment(odontogram, "D900")
    add_treatment(odontogram, "D110", tooth=30, completed=False)

    preview = api_client.get(f"/invoices/preview/{odontogram['id']}", headers=auth_headers)
    assert preview.status_code == 200, preview.text
    body = preview.json()
    assert [line["treatment_record_id"] for line in body["tooth_treatments"]] == [filling["id"]]
    assert body["tooth_treatments"][0]["tooth_number"] == 14
    assert [line["treatment_record_id"] for line in body["global_treatments"]] == [cleaning["id"]]
    assert Decimal(body["subtotal"]) == Decimal("700.00")
    assert Decimal(body["tax"]) == Decimal("105.00")
    assert Decimal(body["total"]) == Decimal("805.00")

    committed = api_client.post(
        "/invoices",
        headers=auth_headers,
        json={"odontogram_id": odontogram["id"], "treatment_record_ids": [filling["id"], cleaning["id"]]},
    )
    assert committed.status_code == 201, committed.text
    invoice = committed.json()
    assert invoice["status"] == "issued"
    assert invoice["invoice_number"] == f"INV-{invoice['id']:06d}"
    assert invoice["issued_date"] is not None
    assert Decimal(invoice["subtotal"]) == Decimal("700.00")
    assert Decimal(invoice["total"]) == Decimal("700.00") * (1 + Decimal("0.15"))
    assert Decimal(invoice["balance"]) == Decimal(invoice["total"])
    assert sum(Decimal(line["price"]) for line in invoice["lines"]) == Decimal(invoice["subtotal"])
    assert {line["treatment_record_id"] for line in invoice["lines"]} == {filling["id"], cleaning["id"]}

    for record_id in (filling["id"], cleaning["id"]):
        record = api_client.get(f"/tooth-treatments/{record_id}", headers=auth_headers).json()
        assert record["invoice_id"] == invoice["id"]

    empty_preview = api_client.get(f"/invoices/preview/{odontogram['id']}", headers=auth_headers).json()
    assert empty_preview["tooth_treatments"] == []
    assert empty_preview["global_treatments"] == []
    assert Decimal(empty_preview["total"]) == Decimal("0")

    again = api_client.post("/invoices", headers=auth_headers, json={"odontogram_id": odontogram["id"]})
    assert again.status_code == 422
    assert again.json()["code"] == "EmptySelection"


def test_partial_selection_leaves_other_lines_eligible(api_client, auth_headers, add_treatment, odontogram):
    first = add_treatment(odontogram, "D101", tooth=14)
    second = add_treatment(odontogram, "D120", tooth=3)

    committed = api_client.post(
        "/invoices",
        headers=auth_headers,
        json={"odontogram_id": odontogram["id"], "treatment_record_ids": [first["id"]]},
    )
    assert committed.status_code == 201, committed.text
    assert [line["treatment_record_id"] for line in committed.json()["lines"]] == [first["id"]]

    preview = api_client.get(f"/invoices/preview/{odontogram['id']}", headers=auth_headers).json()
    assert [line["treatment_record_id"] for line in preview["tooth_treatments"]] == [second["id"]]


def test_selection_errors(api_client, auth_headers, add_treatment, odontogram):
    done = add_treatment(odontogram, "D101", tooth=14)
    planned = add_treatment(odontogram, "D110", tooth=30, completed=False)
    url = "/invoices"

    empty = api_client.post(
        url, headers=auth_headers, json={"odontogram_id": odontogram["id"], "treatment_record_ids": []}
    )
    assert empty.status_code == 422
    assert empty.json()["code"] == "EmptySelection"

    not_completed = api_client.post(
        url,
        headers=auth_headers,
        json={"odontogram_id": odontogram["id"], "treatment_record_ids": [planned["id"]]},
    )
    assert not_completed.status_code == 409
    assert not_completed.json()["code"] == "InvalidState"

    unknown = api_client.post(
        url, headers=auth_headers, json={"odontogram_id": odontogram["id"], "treatment_record_ids": [9999]}
    )
    assert unknown.status_code == 404

    first = api_client.post(
        url, headers=auth_headers, json={"odontogram_id": odontogram["id"], "treatment_record_ids": [done["id"]]}
    )
    assert first.status_code == 201, first.text
    add_treatment(odontogram, "D900")
    stale = api_client.post(
        url, headers=auth_headers, json={"odontogram_id": odontogram["id"], "treatment_record_ids": [done["id"]]}
    )
    assert stale.status_code == 409
    assert stale.json()["code"] == "StaleLine"
    assert stale.json()["retryable"] is True


def test_nothing_eligible_is_empty_selection(api_client, auth_headers, add_treatment, odontogram):
    add_treatment(odontogram, "D101", tooth=14, completed=False)
    response = api_client.post("/invoices", headers=auth_headers, json={"odontogram_id": odontogram["id"]})
    assert response.status_code == 422
    assert response.json()["code"] == "EmptySelection"
    assert api_client.get("/invoices", headers=auth_headers).json() == []


def test_discount_and_notes(api_client, auth_headers, add_treatment, odontogram):
    add_treatment(odontogram, "D101", tooth=14)
    add_treatment(odontogram, "D900")
    response = api_client.post(
        "/invoices",
        headers=auth_headers,
        json={"odontogram_id": odontogram["id"], "discount": "100.00", "notes": "loyalty"},
    )
    assert response.status_code == 201, response.text
    invoice = response.json()
    assert Decimal(invoice["discount"]) == Decimal("100.00")
    assert Decimal(invoice["tax"]) == Decimal("90.00")
    assert Decimal(invoice["total"]) == Decimal("690.00")
    assert invoice["notes"] == "loyalty"


def test_draft_then_issue(api_client, auth_headers, add_treatment, odontogram):
    record = add_treatment(odontogram, "D101", tooth=14)
    draft = api_client.post(
        "/invoices", headers=auth_headers, json={"odontogram_id": odontogram["id"], "as_draft": True}
    )
    assert draft.status_code == 201, draft.text
    assert draft.json()["status"] == "draft"
    assert draft.json()["issued_date"] is None
    fetched = api_client.get(f"/tooth-treatments/{record['id']}", headers=auth_headers).json()
    assert fetched["invoice_id"] == draft.json()["id"]

    issued = api_client.post(
        f"/invoices/{draft.json()['id']}/issue", headers=auth_headers, json={"issue_date": "2026-03-05"}
    )
    assert issued.status_code == 200, issued.text
    assert issued.json()["status"] == "issued"
    assert issued.json()["issued_date"] == "2026-03-05"

    twice = api_client.post(f"/invoices/{draft.json()['id']}/issue", headers=auth_headers)
    assert twice.status_code == 409
    assert twice.json()["code"] == "InvalidState"


def test_zero_total_invoice_is_paid_immediately(api_client, auth_headers, add_treatment, odontogram):
    add_treatment(odontogram, "D910", price="0.00")
    response = api_client.post("/invoices", headers=auth_headers, json={"odontogram_id": odontogram["id"]})
    assert response.status_code == 201, response.text
    assert response.json()["status"] == "paid"
    assert Decimal(response.json()["total"]) == Decimal("0")


def test_tax_rate_comes_from_configuration(api_client, auth_headers, add_treatment, odontogram):
    app.dependency_overrides[get_tax_configuration] = lambda: StaticTaxConfiguration(
        {"default": Decimal("0.075")}
    )
    add_treatment(odontogram, "D101", tooth=14, price="33.33")
    add_treatment(odontogram, "D101", tooth=15, price="33.33")
    add_treatment(odontogram, "D101", tooth=18, price="33.33")
    invoice = api_client.post(
        "/invoices", headers=auth_headers, json={"odontogram_id": odontogram["id"]}
    ).json()
    assert Decimal(invoice["tax_rate"]) == Decimal("0.075")
    assert Decimal(invoice["subtotal"]) == Decimal("99.99")
    assert Decimal(invoice["tax"]) == Decimal("7.50")
    assert Decimal(invoice["total"]) == Decimal("107.49")


def test_list_and_pdf(api_client, auth_headers, add_treatment, odontogram, patient):
    add_treatment(odontogram, "D101", tooth=14)
    invoice = api_client.post(
        "/invoices", headers=auth_headers, json={"odontogram_id": odontogram["id"]}
    ).json()

    listed = api_client.get("/invoices", headers=auth_headers, params={"patient_id": patient["id"]})
    assert [item["id"] for item in listed.json()] == [invoice["id"]]
    assert api_client.get("/invoices", headers=auth_headers, params={"patient_id": 999}).json() == []

    pdf = api_client.get(f"/invoices/{invoice['id']}/pdf", headers=auth_headers)
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")
    assert invoice["invoice_number"] in pdf.headers["content-disposition"]


def test_unknown_invoice_is_not_found(api_client, auth_headers):
    response = api_client.get("/invoices/12345", headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["code"] == "NotFound"


def test_percentage_discount(api_client, auth_headers, add_treatment, odontogram):
    add_treatment(odontogram, "D101", tooth=14)
    add_treatment(odontogram, "D900")
    response = api_client.post(
        "/invoices",
        headers=auth_headers,
        json={"odontogram_id": odontogram["id"], "discount_percentage": "10"},
    )
    assert response.status_code == 201, response.text
    invoice = response.json()
    assert Decimal(invoice["discount_percentage"]) == Decimal("10")
    assert Decimal(invoice["discount"]) == Decimal("70.00")
    assert Decimal(invoice["tax"]) == Decimal("94.50")
    assert Decimal(invoice["total"]) == Decimal("724.50")


def test_discount_amount_and_percentage_are_exclusive(api_client, auth_headers, add_treatment, odontogram):
    add_treatment(odontogram, "D101", tooth=14)
    response = api_client.post(
        "/invoices",
        headers=auth_headers,
        json={"odontogram_id": odontogram["id"], "discount": "5.00", "discount_percentage": "10"},
    )
    assert response.status_code == 422
    assert response.json()["code"] == "ValidationError"
    preview = api_client.get(f"/invoices/preview/{odontogram['id']}", headers=auth_headers).json()
    assert len(preview["tooth_treatments"]) == 1


def test_due_date_drives_overdue_flag(api_client, auth_headers, add_treatment, odontogram):
    add_treatment(odontogram, "D101", tooth=14)
    late = api_client.post(
        "/invoices",
        headers=auth_headers,
        json={"odontogram_id": odontogram["id"], "issue_date": "2025-12-01", "due_date": "2026-01-01"},
    ).json()
    assert late["due_date"] == "2026-01-01"
    assert late["is_overdue"] is True
    assert late["status"] == "issued"

    add_treatment(odontogram, "D900")
    current = api_client.post(
        "/invoices",
        headers=auth_headers,
        json={"odontogram_id": odontogram["id"], "due_date": "2099-12-31"},
    ).json()
    assert current["is_overdue"] is False

    overdue = api_client.get("/invoices", headers=auth_headers, params={"overdue": "true"}).json()
    assert [row["id"] for row in overdue] == [late["id"]]
    on_time = api_client.get("/invoices", headers=auth_headers, params={"overdue": "false"}).json()
    assert [row["id"] for row in on_time] == [current["id"]]

    paid = api_client.post(
        f"/invoices/{late['id']}/payments",
        headers=auth_headers,
        json={"amount": late["total"], "method": "cash"},
    )
    assert paid.status_code == 201, paid.text
    assert paid.json()["status"] == "paid"
    assert paid.json()["is_overdue"] is False


def test_due_date_before_issue_date_is_rejected(api_client, auth_headers, add_treatment, odontogram):
    add_treatment(odontogram, "D101", tooth=14)
    response = api_client.post(
        "/invoices",
        headers=auth_headers,
        json={"odontogram_id": odontogram["id"], "issue_date": "2026-03-10", "due_date": "2026-03-01"},
    )
    assert response.status_code == 422
    assert response.json()["code"] == "ValidationError"
