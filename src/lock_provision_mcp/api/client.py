"""HTTP client for the certificate-issuing service.

Two calls are used during provisioning:

- ``POST /locks/csr`` submits the lock's MAC, IMEI and CSR and returns the
  issued certificate.
- ``GET /keys`` returns the device private key, device CA and root CA.

Failures are never retried; they surface as :class:`RemoteServiceError`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import requests

from .. import __version__
from ..errors import RemoteServiceError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000/api"
DEFAULT_TIMEOUT = 30


@dataclass
class IssuedCertificate:
    """Certificate returned for an uploaded CSR; ``raw`` keeps the full payload."""

    certificate: str
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class DeviceKeys:
    private_key: str
    ca: str
    root_ca: str


class CertificateService(Protocol):
    def upload_csr(self, lock_mac: str, imei: str, csr: str) -> IssuedCertificate: ...

    def get_keys(self) -> DeviceKeys: ...


class CertificateServiceClient:
    """Certificate service client backed by a ``requests.Session``.

    Args:
        base_url: Service root, e.g. ``https://ca.example.com/api``.
        token: Optional bearer token sent with every request.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "Accept": "application/json",
            "User-Agent": f"lock-provision-mcp/{__version__}",
        }
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    def upload_csr(self, lock_mac: str, imei: str, csr: str) -> IssuedCertificate:
        """Submit a CSR and return the issued certificate."""
        body = self._request(
            "POST", "/locks/csr", json_data={"lockMac": lock_mac, "imei": imei, "csr": csr}
        )
        certificate = _require_str(body, "certificate")
        return IssuedCertificate(certificate=certificate, raw=body)

    def get_keys(self) -> DeviceKeys:
        """Fetch the device private key and CA chain."""
        body = self._request("GET", "/keys")
        return DeviceKeys(
            private_key=_require_str(body, "privateKey"),
            ca=_require_str(body, "ca"),
            root_ca=_require_str(body, "rootCA"),
        )

    def _request(
        self, method: str, url: str, json_data: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        full_url = self.base_url + url
        logger.info("Requesting: %s %s", method, full_url)
        try:
            response = self.session.request(
                method=method,
                url=full_url,
                json=json_data,
                headers=self.headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RemoteServiceError(f"{method} {url} failed: {e}") from e

        logger.info("Response: %s", response.status_code)
        if response.status_code >= 400:
            raise RemoteServiceError(
                f"{method} {url} returned {response.status_code}: {_error_detail(response)}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise RemoteServiceError(f"{method} {url} returned a non-JSON body") from e
        if not isinstance(body, dict):
            raise RemoteServiceError(f"{method} {url} returned {type(body).__name__}, expected an object")
        return body


def _require_str(body: dict[str, Any], key: str) -> str:
    value = body.get(key)
    if not isinstance(value, str) or not value:
        raise RemoteServiceError(f"Response is missing '{key}'")
    return value


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason or "no detail"
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if key in body:
                return str(body[key])
    return json.dumps(body)[:200]
