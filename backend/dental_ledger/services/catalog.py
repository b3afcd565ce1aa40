"""Treatment catalog lookups.

The ledger only ever reads the catalog, and only at the moment a treatment
is recorded; the entry is then copied into the treatment record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Protocol

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from dental_ledger.core.errors import CollaboratorUnavailable
from dental_ledger.models.treatment import Treatment, TreatmentCategory

logger = logging.getLogger("dental_ledger.catalog")


@dataclass(frozen=True)
class CatalogEntry:
    code: str
    name: str
    category: TreatmentCategory
    default_price: Decimal
    is_global: bool = False


class TreatmentCatalog(Protocol):
    def lookup(self, code: str) -> CatalogEntry | None: ...


class DatabaseTreatmentCatalog:
    def __init__(self, db: Session):
        self.db = db

    def lookup(self, code: str) -> CatalogEntry | None:
        treatment = self.db.scalar(
            select(Treatment).where(Treatment.code == code.strip().upper(), Treatment.is_active.is_(True))
        )
        if treatment is None:
            return None
        return CatalogEntry(
            code=treatment.code,
            name=treatment.name,
            category=treatment.category,
            default_price=treatment.default_price,
            is_global=treatment.is_global,
        )


class HttpTreatmentCatalog:
    """Catalog served by a remote service at ``GET {base_url}/treatments/{code}``."""

    def __init__(self, base_url: str, *, timeout: float, client: httpx.Client | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    def _get(self, url: str) -> httpx.Response:
        if self._client is not None:
            return self._client.get(url, timeout=self.timeout)
        with httpx.Client(timeout=self.timeout) as client:
            return client.get(url)

    def lookup(self, code: str) -> CatalogEntry | None:
        url = f"{self.base_url}/treatments/{code.strip()}"
        try:
            response = self._get(url)
        except httpx.TimeoutException as exc:
            logger.warning("Catalog lookup timed out for %s", code)
            raise CollaboratorUnavailable("Treatment catalog timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("Catalog lookup failed for %s: %s", code, exc)
            raise CollaboratorUnavailable("Treatment catalog unreachable") from exc
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            logger.warning("Catalog returned %s for %s", response.status_code, code)
            raise CollaboratorUnavailable(f"Treatment catalog returned {response.status_code}")
        try:
            payload = response.json()
            if not payload.get("is_active", True):
                return None
            return CatalogEntry(
                code=payload["code"],
                name=payload["name"],
                category=TreatmentCategory(payload["category"]),
                default_price=Decimal(str(payload["default_price"])),
                is_global=bool(payload.get("is_global", False)),
            )
        except (KeyError, ValueError, InvalidOperation) as exc:
            raise CollaboratorUnavailable("Treatment catalog returned a malformed entry") from exc
