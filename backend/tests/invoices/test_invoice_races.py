from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from dental_ledger.core.errors import ConcurrentModification, StaleLine
from dental_ledger.db.session import SessionLocal
from dental_ledger.models.invoice import Invoice
from dental_ledger.models.tooth_treatment import ToothTreatmentRecord
from dental_ledger.models.user import User
from dental_ledger.services import invoicing
from dental_ledger.services.tax import StaticTaxConfiguration

TAX = StaticTaxConfiguration({"default": Decimal("0.15")})


def _commit(session, odontogram_id, user_id):
    return invoicing.commit_invoice(
        session,
        odontogram_id=odontogram_id,
        actor=session.get(User, user_id),
        tax_config=TAX,
        jurisdiction="default",
    )


def test_losing_commit_raises_stale_line_and_bills_nothing(
    monkeypatch, add_treatment, odontogram, dentist
):
    add_treatment(odontogram, "D101", tooth=14)
    add_treatment(odontogram, "D900")
    dentist_id = dentist.id

    original = invoicing._select_lines
    winner: dict[str, int] = {}

    def select_then_lose_the_race(db, target, eligible, treatment_record_ids):
        selected = original(db, target, eligible, treatment_record_ids)
        if not winner:
            rival = SessionLocal()
            try:
                winner["id"] = _commit(rival, odontogram["id"], dentist_id).id
            finally:
                rival.close()
        return selected

    monkeypatch.setattr(invoicing, "_select_lines", select_then_lose_the_race)

    loser = SessionLocal()
    try:
        with pytest.raises(StaleLine) as excinfo:
            _commit(loser, odontogram["id"], dentist_id)
    finally:
        loser.close()
    assert excinfo.value.retryable is True

    check = SessionLocal()
    try:
        assert check.scalar(select(func.count()).select_from(Invoice)) == 1
        invoice_ids = set(
            check.scalars(
                select(ToothTreatmentRecord.invoice_id).where(
                    ToothTreatmentRecord.odontogram_id == odontogram["id"]
                )
            )
        )
        assert invoice_ids == {winner["id"]}
    finally:
        check.close()


def test_sequential_commits_never_double_bill(api_client, auth_headers, add_treatment, odontogram):
    add_treatment(odontogram, "D101", tooth=14)
    first = api_client.post("/invoices", headers=auth_headers, json={"odontogram_id": odontogram["id"]})
    assert first.status_code == 201, first.text
    line_id = first.json()["lines"][0]["treatment_record_id"]

    add_treatment(odontogram, "D900")
    second = api_client.post(
        "/invoices",
        headers=auth_headers,
        json={"odontogram_id": odontogram["id"], "treatment_record_ids": [line_id]},
    )
    assert second.status_code == 409
    assert second.json()["code"] == "StaleLine"
    assert second.json()["retryable"] is True


def test_lock_timeout_is_a_retryable_conflict(monkeypatch, add_treatment, odontogram, dentist):
    add_treatment(odontogram, "D101", tooth=14)
    dentist_id = dentist.id
    calls: list[str] = []

    class RecordingTax:
        def rate_for(self, jurisdiction):
            calls.append("tax")
            return Decimal("0.15")

    session = SessionLocal()
    actor = session.get(User, dentist_id)

    def lock_wait_expires(*args, **kwargs):
        calls.append("lock")
        raise OperationalError("SELECT ... FOR UPDATE", {}, Exception("lock timeout"))

    monkeypatch.setattr(session, "scalars", lock_wait_expires)
    try:
        with pytest.raises(ConcurrentModification) as excinfo:
            invoicing.commit_invoice(
                session,
                odontogram_id=odontogram["id"],
                actor=actor,
                tax_config=RecordingTax(),
                jurisdiction="default",
            )
    finally:
        session.close()

    assert excinfo.value.retryable is True
    assert calls == ["tax", "lock"]

    check = SessionLocal()
    try:
        assert check.scalar(select(func.count()).select_from(Invoice)) == 0
    finally:
        check.close()


def test_lock_timeout_maps_to_conflict_response(monkeypatch, api_client, auth_headers, add_treatment, odontogram):
    add_treatment(odontogram, "D101", tooth=14)

    def lock_wait_expires(odontogram_id):
        raise OperationalError("SELECT ... FOR UPDATE", {}, Exception("lock timeout"))

    monkeypatch.setattr(invoicing, "_eligible_stmt", lock_wait_expires)
    response = api_client.post("/invoices", headers=auth_headers, json={"odontogram_id": odontogram["id"]})
    assert response.status_code == 409
    assert response.json()["code"] == "ConcurrentModification"
    assert response.json()["retryable"] is True
