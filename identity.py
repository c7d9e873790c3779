import threading
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests

from logging_setup import get_logger

log = get_logger("identity")


class IdentityError(Exception):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


def _safe_json(resp: requests.Response) -> Optional[Dict[str, Any]]:
    """Return the body as a dict, or None for non-JSON (HTML gateway pages)."""
    try:
        data = resp.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else {"data": data}


def _error_message(data: Optional[Dict[str, Any]], resp: requests.Response) -> str:
    if data:
        for key in ("msg", "error_description", "message", "error"):
            if data.get(key):
                return str(data[key])
    snippet = (resp.text or "").strip().replace("\n", " ")[:240]
    return snippet or f"HTTP {resp.status_code}"


class IdentityClient:
    def __init__(
        self,
        base_url: str,
        anon_key: str,
        service_role_key: str = "",
        timeout: int = 10,
        redirect_url: str = "",
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.anon_key = anon_key
        self.service_role_key = service_role_key
        self.timeout = timeout
        self.redirect_url = redirect_url
        self._session = session
        self._local = threading.local()

    @property
    def http(self) -> requests.Session:
        # one Session per worker thread unless a session was injected
        if self._session is not None:
            return self._session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._local.session = requests.Session()
        return session

    # ---------- plumbing ----------
    def _url(self, path: str) -> str:
        if not self.base_url:
            raise IdentityError("SUPABASE_URL is not set")
        return f"{self.base_url}/auth/v1{path}"

    def _headers(self, bearer: Optional[str] = None, admin: bool = False) -> Dict[str, str]:
        key = self.anon_key
        if admin:
            if not self.service_role_key:
                raise IdentityError("service role key not configured")
            key = self.service_role_key
            bearer = self.service_role_key
        return {
            "apikey": key,
            "Authorization": f"Bearer {bearer or key}",
            "Content-Type": "application/json",
        }

    def _request(
        self,
        method: str,
        path: str,
        payload: Optional[dict] = None,
        bearer: Optional[str] = None,
        admin: bool = False,
        params: Optional[dict] = None,
    ) -> Dict[str, Any]:
        url = self._url(path)
        headers = self._headers(bearer=bearer, admin=admin)
        try:
            resp = self.http.request(
                method, url, json=payload, params=params, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            log.warning("identity provider unreachable: %s %s (%s)", method, path, e)
            raise IdentityError(f"identity provider unreachable: {e}") from e

        data = _safe_json(resp)
        if resp.status_code >= 400:
            msg = _error_message(data, resp)
            log.warning("identity provider error %s on %s %s: %s", resp.status_code, method, path, msg)
            raise IdentityError(msg, status=resp.status_code)
        return data or {}

    # ---------- public (anon key) ----------
    def sign_up(self, email: str, password: str, data: Optional[dict] = None) -> Dict[str, Any]:
        return self._request("POST", "/signup", {"email": email, "password": password, "data": data or {}})

    def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        """Return ``{"user": ..., "session": {"access_token", "refresh_token", ...}}``."""
        data = self._request(
            "POST", "/token", {"email": email, "password": password}, params={"grant_type": "password"}
        )
        session = {k: v for k, v in data.items() if k != "user"}
        if not session.get("access_token"):
            raise IdentityError("no session returned")
        return {"user": data.get("user"), "session": session}

    def get_user(self, token: str) -> Dict[str, Any]:
        return self._request("GET", "/user", bearer=token)

    def sign_out(self, token: str) -> Dict[str, Any]:
        return self._request("POST", "/logout", bearer=token)

    def recover(self, email: str) -> Dict[str, Any]:
        params = {"redirect_to": self.redirect_url} if self.redirect_url else None
        return self._request("POST", "/recover", {"email": email}, params=params)

    def update_user(self, token: str, attributes: dict) -> Dict[str, Any]:
        return self._request("PUT", "/user", attributes, bearer=token)

    def authorize_url(self, provider: str) -> str:
        """URL the browser is sent to for an OAuth login (no network call)."""
        query = {"provider": provider}
        if self.redirect_url:
            query["redirect_to"] = self.redirect_url
        return f"{self._url('/authorize')}?{urlencode(query)}"

    # ---------- admin (service role key) ----------
    def admin_create_user(self, attributes: dict) -> Dict[str, Any]:
        return self._request("POST", "/admin/users", attributes, admin=True)

    def admin_update_user_by_id(self, user_id: str, attributes: dict) -> Dict[str, Any]:
        return self._request("PUT", f"/admin/users/{user_id}", attributes, admin=True)
