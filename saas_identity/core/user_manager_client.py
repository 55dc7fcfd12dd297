"""HTTP client for the user manager service, used by the registration services."""
from __future__ import annotations
import logging
from typing import Any, Dict, Optional

import requests

from .errors import UpstreamFailure

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30
JSON_HEADERS = {"content-type": "application/json"}


class UserManagerClient:
    """Thin wrapper over the user manager's REST surface.

    Usage:
        client = UserManagerClient("http://user-manager:3001/user")
        if not client.user_exists("alice"):
            result = client.provision_tenant_admin({...})
    """

    def __init__(self, base_url: str, timeout: int = REQUEST_TIMEOUT, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def user_exists(self, user_name: str) -> bool:
        """True when GET /pool/{user} answers with a record for that exact user name.

        Transport errors and 400 answers count as "does not exist".
        """
        url = f"{self.base_url}/pool/{user_name}"
        try:
            resp = self.session.get(url, headers=JSON_HEADERS, timeout=self.timeout)
        except requests.RequestException as e:
            logger.debug("User lookup for %s failed, treating as new: %s", user_name, e)
            return False

        if resp.status_code == 400:
            return False
        try:
            body = resp.json()
        except ValueError:
            return False
        return isinstance(body, dict) and body.get("userName") == user_name

    def provision_tenant_admin(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._post("/reg", payload, step="provision_tenant_admin")

    def provision_system_admin(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._post("/system", payload, step="provision_system_admin")

    def delete_infra(self) -> None:
        self._delete("/tenants", step="delete_infra")
        logger.debug("Removed infrastructure")

    def _post(self, path: str, payload: Dict[str, Any], step: str) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.post(url, json=payload, headers=JSON_HEADERS, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamFailure(step, e) from e
        if resp.status_code != 200:
            raise UpstreamFailure(step, message=f"{step} failed: HTTP {resp.status_code} {resp.text[:200]}")
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamFailure(step, e) from e

    def _delete(self, path: str, step: str) -> None:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.delete(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamFailure(step, e) from e
        if resp.status_code != 200:
            raise UpstreamFailure(step, message=f"{step} failed: HTTP {resp.status_code} {resp.text[:200]}")
