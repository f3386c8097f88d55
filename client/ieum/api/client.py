"""
REST client for the chat backend.

Every response follows the ``{ok: bool, ...payload}`` envelope. A 401/403
invalidates the stored credentials before the error propagates; nothing is
retried here, callers refetch when a screen regains focus.
"""
from __future__ import annotations

import logging
from typing import Any, Callable

import requests

from ieum.core.config import Settings, settings as default_settings
from ieum.core.errors import ApiError, AuthError, NetworkError
from ieum.core.events import Listeners, Subscription
from ieum.crud.storage import CredentialStore

logger = logging.getLogger(__name__)

AUTH_FAILURE_STATUSES = (401, 403)


class ApiClient:
    def __init__(
        self,
        credentials: CredentialStore,
        settings: Settings | None = None,
        session: requests.Session | None = None,
    ):
        self.settings = settings or default_settings
        self.credentials = credentials
        self.session = session or requests.Session()
        self._auth_failure_listeners = Listeners()

    def on_auth_failure(self, callback: Callable[[AuthError], None]) -> Subscription:
        """Called after credentials were cleared because the backend rejected them."""
        return self._auth_failure_listeners.add(callback)

    def _url(self, endpoint: str) -> str:
        return f"{self.settings.api_url.rstrip('/')}/{endpoint.lstrip('/')}"

    def _auth_headers(self, json_body: bool = True) -> dict[str, str]:
        headers: dict[str, str] = {}
        if json_body:
            headers["Content-Type"] = "application/json"
        token = self.credentials.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> dict[str, Any]:
        json_body = "files" not in kwargs
        try:
            resp = self.session.request(
                method,
                self._url(endpoint),
                headers=self._auth_headers(json_body=json_body),
                timeout=self.settings.request_timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, endpoint, e)
            raise NetworkError("Network request failed") from e

        return self._handle_response(resp, method, endpoint)

    def _handle_response(self, resp: requests.Response, method: str, endpoint: str) -> dict[str, Any]:
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {"data": data}

        if not resp.ok:
            message = data.get("error") or "Request failed"
            if resp.status_code in AUTH_FAILURE_STATUSES:
                logger.warning("%s %s rejected with %s, clearing credentials", method, endpoint, resp.status_code)
                self.credentials.clear()
                error = AuthError(message, status_code=resp.status_code)
                self._auth_failure_listeners.notify(error)
                raise error

            logger.warning("%s %s returned %s: %s", method, endpoint, resp.status_code, message)
            raise ApiError(message, code=data.get("code"), status_code=resp.status_code)

        if data.get("ok") is False:
            raise ApiError(data.get("error") or "Request failed", code=data.get("code"), status_code=resp.status_code)

        return data

    def get(self, endpoint: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return self._request("GET", endpoint, params=params)

    def post(self, endpoint: str, data: Any = None) -> dict[str, Any]:
        return self._request("POST", endpoint, json=data)

    def put(self, endpoint: str, data: Any) -> dict[str, Any]:
        return self._request("PUT", endpoint, json=data)

    def patch(self, endpoint: str, data: Any) -> dict[str, Any]:
        return self._request("PATCH", endpoint, json=data)

    def delete(self, endpoint: str) -> dict[str, Any]:
        return self._request("DELETE", endpoint)

    def upload_file(self, endpoint: str, files: dict[str, Any], data: dict[str, Any] | None = None) -> dict[str, Any]:
        # requests sets the multipart Content-Type with its boundary
        return self._request("POST", endpoint, files=files, data=data)

    def put_presigned(self, url: str, body: bytes, content_type: str) -> None:
        """Direct upload to storage; the presigned URL carries its own auth."""
        try:
            resp = self.session.put(
                url,
                data=body,
                headers={"Content-Type": content_type},
                timeout=self.settings.request_timeout,
            )
        except requests.RequestException as e:
            logger.error("Presigned upload failed: %s", e)
            raise NetworkError("Failed to upload to storage") from e

        if not resp.ok:
            logger.error("Presigned upload returned %s", resp.status_code)
            raise NetworkError("Failed to upload to storage")

    def update_push_token(self, token: str) -> bool:
        """Register the device push token; never blocks the app flow."""
        try:
            self.post("/users/push-token", {"token": token})
        except Exception as e:  # noqa: BLE001 - push registration is optional
            logger.error("Failed to update push token: %s", e)
            return False
        return True
