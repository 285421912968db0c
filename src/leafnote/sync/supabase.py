"""Supabase REST client wrapper.

Talks to the PostgREST table API (`/rest/v1`) and the GoTrue auth API
(`/auth/v1`) over plain HTTP, with error mapping from HTTP failures to a
small exception hierarchy.
"""

from typing import Any, Optional

import requests

from ..config import get_config


class SupabaseError(Exception):
    """Base exception for Supabase API errors."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
        payload: Optional[dict] = None,
    ):
        self.message = message
        self.status = status
        self.code = code
        self.payload = payload or {}
        super().__init__(message)


class SupabaseConfigError(SupabaseError):
    """Raised when Supabase is not properly configured."""

    pass


class SupabaseSchemaError(SupabaseError):
    """Raised when a write names a column the remote table lacks."""

    pass


# PostgREST "column not found in schema cache" and Postgres "undefined column"
SCHEMA_ERROR_CODES = {"PGRST204", "42703"}


def _error_from_response(response: requests.Response) -> SupabaseError:
    """Build the matching exception from a non-success response."""
    try:
        payload = response.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    code = payload.get("code") or payload.get("error_code") or payload.get("error")
    code = str(code) if code is not None else None
    message = (
        payload.get("message")
        or payload.get("msg")
        or payload.get("error_description")
        or payload.get("error")
        or f"HTTP error: {response.status_code}"
    )

    if code in SCHEMA_ERROR_CODES:
        return SupabaseSchemaError(str(message), response.status_code, code, payload)
    return SupabaseError(str(message), response.status_code, code, payload)


class SupabaseClient:
    """Client for a Supabase project's REST and auth endpoints."""

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize client.

        Args:
            url: Project URL (uses config if not provided)
            api_key: Anon or service-role key (uses config if not provided)
            timeout: Request timeout in seconds (uses config if not provided)
        """
        config = get_config()

        self.url = (url or config.supabase_url or "").rstrip("/")
        self.api_key = api_key or config.supabase_anon_key
        self.timeout = timeout if timeout is not None else config.http_timeout

        if not self.url:
            raise SupabaseConfigError("SUPABASE_URL not set")
        if not self.api_key:
            raise SupabaseConfigError("SUPABASE_ANON_KEY not set")

        self.access_token: Optional[str] = None
        self._session = requests.Session()
        self._session.headers.update({
            "apikey": self.api_key,
            "Accept": "application/json",
            "User-Agent": "Leafnote/1.0 (reading tracker)",
        })

    def set_access_token(self, token: Optional[str]) -> None:
        """Act as the signed-in user (None reverts to the API key)."""
        self.access_token = token

    def _auth_headers(self) -> dict:
        return {"Authorization": f"Bearer {self.access_token or self.api_key}"}

    def request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Any = None,
        headers: Optional[dict] = None,
    ) -> Any:
        """Make a request with error handling.

        Returns:
            Decoded JSON body, or None for empty responses

        Raises:
            SupabaseError: On network failure or non-success status
        """
        all_headers = self._auth_headers()
        all_headers.update(headers or {})
        try:
            response = self._session.request(
                method,
                f"{self.url}{path}",
                params=params,
                json=json,
                headers=all_headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            raise SupabaseError("Request timed out")
        except requests.exceptions.RequestException as e:
            raise SupabaseError(f"Request failed: {e}")

        if not response.ok:
            raise _error_from_response(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    # ========================================================================
    # Table Operations
    # ========================================================================

    def select(
        self,
        table: str,
        filters: Optional[dict[str, str]] = None,
        order: Optional[str] = None,
        columns: str = "*",
    ) -> list[dict]:
        """Select rows matching equality filters.

        Args:
            table: Table name
            filters: Column -> value, matched with `eq`
            order: PostgREST order clause, e.g. "created_at.desc"
            columns: Column list to return
        """
        params = {"select": columns}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{value}"
        if order:
            params["order"] = order

        data = self.request("GET", f"/rest/v1/{table}", params=params)
        if not isinstance(data, list):
            raise SupabaseError(f"Unexpected response shape from {table}: {type(data).__name__}")
        return data

    def select_since(
        self,
        table: str,
        column: str,
        since: str,
        filters: Optional[dict[str, str]] = None,
        columns: str = "*",
    ) -> list[dict]:
        """Select rows where `column` is at or after `since`."""
        params = {"select": columns, column: f"gte.{since}"}
        for name, value in (filters or {}).items():
            params[name] = f"eq.{value}"
        data = self.request("GET", f"/rest/v1/{table}", params=params)
        return data if isinstance(data, list) else []

    def upsert(self, table: str, rows: list[dict]) -> None:
        """Insert rows, merging on primary-key conflicts."""
        self.request(
            "POST",
            f"/rest/v1/{table}",
            json=rows,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    def insert(self, table: str, row: dict) -> None:
        self.request(
            "POST",
            f"/rest/v1/{table}",
            json=row,
            headers={"Prefer": "return=minimal"},
        )

    def delete(self, table: str, filters: dict[str, str]) -> None:
        """Delete rows matching equality filters."""
        if not filters:
            raise SupabaseError("Refusing to delete without filters")
        params = {column: f"eq.{value}" for column, value in filters.items()}
        self.request("DELETE", f"/rest/v1/{table}", params=params)
