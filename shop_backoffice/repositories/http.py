"""
repositories/http.py

Thin JSON client over requests.Session for the shop API.

Error mapping:
  - transport failure (DNS, refused, timeout)  -> NetworkError
  - non-2xx response                           -> BusinessRuleError (server message if any)
"""
from __future__ import annotations

import json
import logging
from typing import Any, Optional

import requests

from ..config import Settings, get_settings
from ..errors import GENERIC_REMOTE_MESSAGE, BusinessRuleError, NetworkError

_log = logging.getLogger(__name__)


def extract_error_message(data: Any, status: Optional[int] = None) -> str:
    """
    Pick the most useful human message out of an error body.

    Looks at `message`, then `error`, then `errors` (list or field->messages dict).
    Falls back to a generic message mentioning the status.
    """
    if isinstance(data, dict):
        msg = data.get("message")
        if isinstance(msg, list):
            msg = ", ".join(str(m) for m in msg if m)
        if msg:
            return str(msg)

        err = data.get("error")
        if err:
            return err if isinstance(err, str) else json.dumps(err, ensure_ascii=False)

        errors = data.get("errors")
        if isinstance(errors, list) and errors:
            parts = []
            for e in errors:
                if isinstance(e, str):
                    parts.append(e)
                elif isinstance(e, dict) and e.get("field") and e.get("message"):
                    parts.append(f"{e['field']}: {e['message']}")
                elif isinstance(e, dict) and e.get("message"):
                    parts.append(str(e["message"]))
                else:
                    parts.append(json.dumps(e, ensure_ascii=False))
            return ", ".join(parts)
        if isinstance(errors, dict) and errors:
            fields = []
            for field, msgs in errors.items():
                text = ", ".join(str(m) for m in msgs) if isinstance(msgs, list) else str(msgs)
                fields.append(f"{field}: {text}")
            return "; ".join(fields)
    elif isinstance(data, str) and data.strip():
        return data.strip()

    if status is not None:
        return f"{GENERIC_REMOTE_MESSAGE} (HTTP {status})"
    return GENERIC_REMOTE_MESSAGE


class ApiClient:
    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json", "Accept": "application/json"})
        if token:
            self.set_token(token)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ApiClient":
        s = settings or get_settings()
        return cls(s.api_base_url, token=s.api_token, timeout=s.api_timeout)

    def set_token(self, token: Optional[str]) -> None:
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"
        else:
            self.session.headers.pop("Authorization", None)

    # ---- verbs ------------------------------------------------------------

    def get(self, path: str, params: Optional[dict] = None) -> Any:
        return self._request("GET", path, params=params)

    def post(self, path: str, payload: Optional[dict] = None) -> Any:
        return self._request("POST", path, json=payload)

    # ---- internals --------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = self._url(path)
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            _log.warning("%s %s failed: %s", method, url, e)
            raise NetworkError() from e

        if not resp.ok:
            try:
                body = resp.json()
            except ValueError:
                body = resp.text
            message = extract_error_message(body, resp.status_code)
            code = body.get("code") or body.get("errorCode") if isinstance(body, dict) else None
            _log.info("%s %s rejected (%s): %s", method, url, resp.status_code, message)
            raise BusinessRuleError(message, status=resp.status_code, code=code)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            _log.warning("%s %s returned a non-JSON body", method, url)
            raise BusinessRuleError("Unexpected response from the server.", status=resp.status_code) from e
