"""
Python client for the Agency Portfolio API.

Mirrors what the public site and the admin dashboard do: it keeps a local copy
of the portfolio and category lists, filters the portfolio by category on the
client side, and holds the admin token issued at login. Any admin call that
comes back 401 drops the token and raises AuthRequired so the caller can ask
for the password again.

Works with a `requests.Session` or anything with the same `request()` shape
(FastAPI's TestClient included).
"""

import mimetypes
import os
from typing import Any, Dict, List, Optional

import requests

ALL_CATEGORIES = "all"


class ApiError(Exception):
    def __init__(self, status_code: int, payload: Any):
        message = payload.get("message") if isinstance(payload, dict) else str(payload)
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.payload = payload


class AuthRequired(ApiError):
    pass


class PortfolioClient:
    def __init__(self, base_url: str = "", session=None, timeout: Optional[float] = 30):
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.token: Optional[str] = None
        self._portfolio: Optional[List[Dict[str, Any]]] = None
        self._categories: Optional[List[Dict[str, Any]]] = None

    # ---------- plumbing ----------
    def _request(self, method: str, path: str, admin: bool = False, **kwargs) -> Any:
        headers = kwargs.pop("headers", {}) or {}
        if admin:
            if not self.token:
                raise AuthRequired(401, {"message": "Admin login required"})
            headers["Authorization"] = f"Bearer {self.token}"
        if self.timeout is not None and isinstance(self.session, requests.Session):
            kwargs.setdefault("timeout", self.timeout)
        resp = self.session.request(method, f"{self.base_url}{path}", headers=headers, **kwargs)
        try:
            payload = resp.json()
        except ValueError:
            payload = {"message": resp.text}
        if resp.status_code == 401 and admin:
            self.token = None
            raise AuthRequired(resp.status_code, payload)
        if resp.status_code >= 400:
            raise ApiError(resp.status_code, payload)
        return payload

    def invalidate(self) -> None:
        self._portfolio = None
        self._categories = None

    # ---------- public site ----------
    def portfolio(self, refresh: bool = False) -> List[Dict[str, Any]]:
        if self._portfolio is None or refresh:
            self._portfolio = self._request("GET", "/api/portfolio")
        return list(self._portfolio)

    def visible_items(self, active_filter: str = ALL_CATEGORIES) -> List[Dict[str, Any]]:
        items = self.portfolio()
        if active_filter == ALL_CATEGORIES:
            return items
        return [item for item in items if item.get("category") == active_filter]

    def portfolio_by_category(self, category: str) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/portfolio", params={"category": category})

    def categories(self, refresh: bool = False) -> List[Dict[str, Any]]:
        if self._categories is None or refresh:
            self._categories = self._request("GET", "/api/categories")
        return list(self._categories)

    def submit_contact(self, name: str, email: str, message: str) -> Dict[str, Any]:
        return self._request("POST", "/api/contact", json={"name": name, "email": email, "message": message})

    # ---------- admin ----------
    @property
    def is_admin(self) -> bool:
        return self.token is not None

    def login(self, password: str) -> bool:
        try:
            payload = self._request("POST", "/api/admin/login", json={"password": password})
        except ApiError as exc:
            if exc.status_code == 401:
                self.token = None
                return False
            raise
        self.token = payload["access_token"]
        return True

    def logout(self) -> None:
        self.token = None

    def add_portfolio_item(self, title: str, description: str, category: str, image: str) -> Dict[str, Any]:
        body = {"title": title, "description": description, "category": category, "image": image}
        item = self._request("POST", "/api/portfolio", admin=True, json=body)
        self.invalidate()
        return item

    def update_portfolio_item(self, item_id: str, **changes) -> Dict[str, Any]:
        item = self._request("PUT", f"/api/portfolio/{item_id}", admin=True, json=changes)
        self.invalidate()
        return item

    def delete_portfolio_item(self, item_id: str) -> Dict[str, Any]:
        result = self._request("DELETE", f"/api/portfolio/{item_id}", admin=True)
        self.invalidate()
        return result

    def add_category(self, name: str, display_name: str, color: Optional[str] = None) -> Dict[str, Any]:
        body = {"name": name, "displayName": display_name}
        if color:
            body["color"] = color
        category = self._request("POST", "/api/categories", admin=True, json=body)
        self.invalidate()
        return category

    def delete_category(self, category_id: str) -> Dict[str, Any]:
        result = self._request("DELETE", f"/api/categories/{category_id}", admin=True)
        self.invalidate()
        return result

    def upload(self, path: str, content_type: Optional[str] = None) -> Dict[str, Any]:
        name = os.path.basename(path)
        ctype = content_type or mimetypes.guess_type(name)[0] or "application/octet-stream"
        with open(path, "rb") as fh:
            return self.upload_bytes(fh.read(), name, ctype)

    def upload_bytes(self, data: bytes, filename: str, content_type: str) -> Dict[str, Any]:
        return self._request("POST", "/api/upload", admin=True, files={"file": (filename, data, content_type)})

    def contact_submissions(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/admin/contacts", admin=True)

    def uploaded_files(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/admin/files", admin=True)
