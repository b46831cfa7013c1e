import logging
from typing import Any, NamedTuple

import requests

import config
from models import BillIn

logger = logging.getLogger(__name__)

class ClientResult(NamedTuple):
    ok: bool
    message: str = ""
    data: Any = None

class BillClient:
    """
    Talks to the bill history API. Failures never raise: they come back as
    ClientResult(ok=False, message=...) so callers can keep unsaved edits.
    """

    def __init__(self, base_url: str = config.BACKEND_URL, timeout: float = config.REQUEST_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _call(self, method: str, path: str, allow_missing: bool = False, **kwargs) -> ClientResult:
        url = f"{self.base_url}{path}"
        try:
            r = requests.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, url, e)
            return ClientResult(False, f"Could not reach server: {e}")
        try:
            data = r.json()
        except ValueError:
            logger.warning("%s %s returned a non-JSON body (HTTP %s)", method, url, r.status_code)
            return ClientResult(False, f"Unexpected response from server (HTTP {r.status_code})")

        if allow_missing and r.status_code == 404:
            # not found is an answer, not a failure
            error = data.get("error") if isinstance(data, dict) else None
            return ClientResult(True, error or "Not found", None)

        if not isinstance(data, dict) or not data.get("success", r.ok):
            error = data.get("error") if isinstance(data, dict) else None
            message = error or f"Request failed (HTTP {r.status_code})"
            logger.warning("%s %s: %s", method, url, message)
            return ClientResult(False, message, data)
        return ClientResult(True, "", data)

    def health(self) -> ClientResult:
        return self._call("GET", "/health")

    def save_bill(self, bill: dict, bill_name: str = None) -> ClientResult:
        payload = BillIn.model_validate(bill).model_dump(mode="json")
        if bill_name is not None:
            payload["bill_name"] = bill_name
        res = self._call("POST", "/bills", json=payload)
        if not res.ok:
            return res
        return ClientResult(True, "Bill saved", res.data.get("bill_id"))

    def list_bills(self) -> ClientResult:
        res = self._call("GET", "/bills")
        if not res.ok:
            return res
        # skip records without a timestamp, newest first
        bills = [b for b in res.data.get("bills") or [] if (b.get("value") or {}).get("created_at")]
        bills.sort(key=lambda b: b["value"]["created_at"], reverse=True)
        return ClientResult(True, "", bills)

    def get_bill(self, bill_id: str) -> ClientResult:
        res = self._call("GET", f"/bills/{bill_id}", allow_missing=True)
        if not res.ok or res.data is None:
            return res
        return ClientResult(True, "", res.data.get("bill"))

    def delete_bill(self, bill_id: str) -> ClientResult:
        res = self._call("DELETE", f"/bills/{bill_id}")
        if not res.ok:
            return res
        return ClientResult(True, "Bill deleted")
