"""Thin Xendit invoice API client."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from .exceptions import UpstreamUnavailable
from .settings import settings

logger = logging.getLogger(__name__)

PAID_STATUSES = frozenset({"PAID", "SETTLED"})


class XenditClient:
    def __init__(self, secret_key: str, base_url: str, timeout: float = 10.0, http: Optional[requests.Session] = None):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()

    @classmethod
    def from_settings(cls) -> "XenditClient":
        return cls(
            secret_key=settings.XENDIT_SECRET_KEY,
            base_url=settings.XENDIT_API_URL,
            timeout=settings.XENDIT_TIMEOUT_SECONDS,
        )

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.http.request(
                method,
                url,
                auth=(self.secret_key, ""),
                timeout=self.timeout,
                **kwargs,
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.Timeout as e:
            logger.error(f"Xendit {method} {path} timed out after {self.timeout}s")
            raise UpstreamUnavailable("Payment provider timed out") from e
        except requests.exceptions.HTTPError as e:
            detail = ""
            try:
                body = e.response.json()
                if isinstance(body, dict):
                    detail = str(body.get("message") or "")
            except ValueError:
                pass
            logger.error(f"Xendit {method} {path} failed: {e.response.status_code} {detail}")
            raise UpstreamUnavailable(detail or f"Payment provider returned {e.response.status_code}") from e
        except ValueError as e:
            # before RequestException: requests' JSONDecodeError subclasses both
            logger.error(f"Xendit {method} {path} returned invalid JSON")
            raise UpstreamUnavailable("Payment provider returned an invalid response") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Xendit {method} {path} failed: {str(e)}")
            raise UpstreamUnavailable("Payment provider unreachable") from e

    def find_invoices(self, external_id: str) -> List[Dict[str, Any]]:
        """Invoices whose external_id is the registration id, latest first."""
        data = self._request("GET", "/v2/invoices", params={"external_id": external_id})
        if not isinstance(data, list):
            return []
        return data

    def create_invoice(self, invoice: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/v2/invoices", json=invoice)


def pick_invoice(invoices: List[Dict[str, Any]]) -> Dict[str, Any]:
    """A paid invoice wins over the latest one when a registration has several."""
    for invoice in invoices:
        if invoice.get("status") in PAID_STATUSES:
            return invoice
    return invoices[0]
