from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Mapping, Protocol

import httpx

from dental_ledger.core.errors import CollaboratorUnavailable, LedgerValidationError

logger = logging.getLogger("dental_ledger.tax")


class TaxConfiguration(Protocol):
    def rate_for(self, jurisdiction: str) -> Decimal: ...


class StaticTaxConfiguration:
    def __init__(self, rates: Mapping[str, Decimal]):
        self.rates = {key: Decimal(str(value)) for key, value in rates.items()}

    def rate_for(self, jurisdiction: str) -> Decimal:
        try:
            return self.rates[jurisdiction]
        except KeyError:
            raise LedgerValidationError(f"No tax rate configured for {jurisdiction!r}") from None


class HttpTaxConfiguration:
    """Rates served at ``GET {base_url}/rates/{jurisdiction}`` as ``{"rate": "0.15"}``."""

    def __init__(self, base_url: str, *, timeout: float, client: httpx.Client | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    def _get(self, url: str) -> httpx.Response:
        if self._client is not None:
            return self._client.get(url, timeout=self.timeout)
        with httpx.Client(timeout=self.timeout) as client:
            return client.get(url)

    def rate_for(self, jurisdiction: str) -> Decimal:
        url = f"{self.base_url}/rates/{jurisdiction}"
        try:
            response = self._get(url)
        except httpx.TimeoutException as exc:
            logger.warning("Tax rate lookup timed out for %s", jurisdiction)
            raise CollaboratorUnavailable("Tax configuration timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("Tax rate lookup failed for %s: %s", jurisdiction, exc)
            raise CollaboratorUnavailable("Tax configuration unreachable") from exc
        if response.status_code == 404:
            raise LedgerValidationError(f"No tax rate configured for {jurisdiction!r}")
        if response.status_code >= 400:
            raise CollaboratorUnavailable(f"Tax configuration returned {response.status_code}")
        try:
            rate = Decimal(str(response.json()["rate"]))
        except (KeyError, ValueError, InvalidOperation) as exc:
            raise CollaboratorUnavailable("Tax configuration returned a malformed rate") from exc
        if rate < 0 or rate >= 1:
            raise CollaboratorUnavailable(f"Tax configuration returned out-of-range rate {rate}")
        return rate
