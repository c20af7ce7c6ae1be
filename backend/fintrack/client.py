"""
Python client for the finance tracker API.

The bearer token lives in a ``ClientSession`` that is passed to the client
explicitly. It is the single source of truth for the current identity: it is
filled by ``login`` and cleared by ``logout`` or by any 401 response.
"""

import datetime as dt
import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-success response from the API."""

    def __init__(self, status_code: int, message: str, errors=None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.errors = errors or []


class SessionExpired(ApiError):
    """The API rejected the credentials; the session has been cleared."""


class NotLoggedIn(Exception):
    pass


class ClientSession:
    """Current identity of a client: token and the email it was issued for."""

    def __init__(self):
        self.token: Optional[str] = None
        self.email: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def start(self, email: str, token: str) -> None:
        self.email, self.token = email, token

    def clear(self) -> None:
        self.email, self.token = None, None

    def auth_headers(self) -> Dict[str, str]:
        if self.token is None:
            raise NotLoggedIn("log in before calling protected endpoints")
        return {"Authorization": f"Bearer {self.token}"}


def _range_params(date_from: Optional[dt.date], date_to: Optional[dt.date]) -> Dict[str, str]:
    params = {}
    if date_from is not None:
        params["from"] = date_from.isoformat()
    if date_to is not None:
        params["to"] = date_to.isoformat()
    return params


def _jsonable(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v.isoformat() if isinstance(v, dt.date) else v for k, v in data.items()}


class FinanceClient:
    """Thin wrapper over the REST API.

    ``http`` is any ``httpx.Client`` pointed at the API (a FastAPI
    ``TestClient`` works too).
    """

    def __init__(self, http: httpx.Client, session: Optional[ClientSession] = None):
        self.http = http
        self.session = session or ClientSession()

    @classmethod
    def connect(cls, base_url: str, timeout: float = 10.0) -> "FinanceClient":
        return cls(httpx.Client(base_url=base_url, timeout=timeout))

    def _request(self, method: str, url: str, *, auth: bool = True, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if auth:
            headers.update(self.session.auth_headers())
        response = self.http.request(method, url, headers=headers, **kwargs)

        if response.status_code == 401:
            if self.session.is_authenticated:
                logger.info("Session for %s rejected by API; clearing", self.session.email)
            self.session.clear()
            raise SessionExpired(401, self._message(response))
        if response.is_error:
            body = self._body(response)
            raise ApiError(response.status_code, self._message(response), body.get("errors"))
        return response.json()

    @staticmethod
    def _body(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    @classmethod
    def _message(cls, response: httpx.Response) -> str:
        detail = cls._body(response).get("detail")
        return detail if isinstance(detail, str) else response.reason_phrase

    # Accounts

    def register(self, email: str, password: str) -> Dict[str, Any]:
        return self._request("POST", "/api/register", auth=False,
                             json={"email": email, "password": password})

    def login(self, email: str, password: str) -> ClientSession:
        self.session.clear()
        data = self._request("POST", "/api/login", auth=False,
                             json={"email": email, "password": password})
        self.session.start(email, data["access_token"])
        return self.session

    def logout(self) -> None:
        self.session.clear()

    def me(self) -> Dict[str, Any]:
        return self._request("GET", "/api/users/me")

    # Records

    def list_income(self, date_from=None, date_to=None):
        return self._request("GET", "/api/income", params=_range_params(date_from, date_to))["items"]

    def create_income(self, **fields):
        return self._request("POST", "/api/income", json=_jsonable(fields))

    def update_income(self, record_id: int, **fields):
        return self._request("PATCH", f"/api/income/{record_id}", json=_jsonable(fields))

    def delete_income(self, record_id: int) -> None:
        self._request("DELETE", f"/api/income/{record_id}")

    def list_expenses(self, date_from=None, date_to=None):
        return self._request("GET", "/api/expense", params=_range_params(date_from, date_to))["items"]

    def create_expense(self, **fields):
        return self._request("POST", "/api/expense", json=_jsonable(fields))

    def update_expense(self, record_id: int, **fields):
        return self._request("PATCH", f"/api/expense/{record_id}", json=_jsonable(fields))

    def delete_expense(self, record_id: int) -> None:
        self._request("DELETE", f"/api/expense/{record_id}")

    # Reports

    def report(self, date_from=None, date_to=None):
        return self._request("GET", "/api/reports", params=_range_params(date_from, date_to))

    def monthly_report(self, date_from=None, date_to=None):
        return self._request("GET", "/api/reports/monthly", params=_range_params(date_from, date_to))["months"]

    def admin_users(self):
        return self._request("GET", "/api/admin/users")["users"]
