"""
Supabase REST Wrapper - no SDK dependency
Mimics supabase-py's .table().select().eq().execute() chaining
using httpx + PostgREST query params.

Used by: services/agent_store.py (SupabaseAgentStore)
"""

import os
import logging
import httpx
from typing import Optional

from .errors import StoreError

logger = logging.getLogger("SupabaseREST")


class QueryResult:
    """Mimics supabase execute() result with .data attribute"""
    def __init__(self, data, count=None):
        self.data = data if data else []
        self.count = count


class TableQuery:
    """Chainable query builder for PostgREST API"""

    def __init__(
        self,
        base_url: str,
        key: str,
        table: str,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self._base_url = f"{base_url}/rest/v1/{table}"
        self._table = table
        self._key = key
        self._timeout = timeout
        self._transport = transport
        self._params = {}
        self._method = "GET"
        self._body = None
        self._extra_headers = {}
        self._want_single = False

    def _headers(self):
        h = {
            "apikey": self._key,
            "Authorization": f"Bearer {self._key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        h.update(self._extra_headers)
        return h

    # ── Query builders ──

    def select(self, columns: str = "*"):
        self._method = "GET"
        self._params["select"] = columns
        return self

    def insert(self, data):
        self._method = "POST"
        self._body = data
        return self

    def update(self, data: dict):
        self._method = "PATCH"
        self._body = data
        return self

    # ── Filters ──

    def eq(self, column: str, value):
        self._params[column] = f"eq.{value}"
        return self

    def lte(self, column: str, value):
        self._params[column] = f"lte.{value}"
        return self

    # ── Modifiers ──

    def order(self, column: str, desc: bool = False):
        direction = "desc" if desc else "asc"
        self._params["order"] = f"{column}.{direction}"
        return self

    def limit(self, count: int):
        self._params["limit"] = str(count)
        return self

    def single(self):
        """Return single row (first match)"""
        self._want_single = True
        self._params["limit"] = "1"
        return self

    # ── Execute ──

    def execute(self) -> QueryResult:
        """Execute the query synchronously via httpx; raises StoreError on failure"""
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                resp = client.request(
                    self._method,
                    self._base_url,
                    headers=self._headers(),
                    params=self._params,
                    json=self._body,
                )
        except httpx.HTTPError as e:
            logger.error(f"[SupabaseREST] Request failed: {e}")
            raise StoreError(f"{self._method} {self._table} failed", e) from e

        if resp.status_code not in (200, 201, 204):
            logger.error(f"[SupabaseREST] {self._method} {self._base_url}: {resp.status_code} {resp.text[:300]}")
            raise StoreError(f"{self._method} {self._table} returned {resp.status_code}")

        data = resp.json() if resp.text else []

        # Single mode: return first row as .data
        if self._want_single and isinstance(data, list):
            data = data[0] if data else None

        return QueryResult(data)


class SupabaseREST:
    """Lightweight Supabase REST client mimicking SDK interface."""

    def __init__(
        self,
        url: str = None,
        key: str = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self._url = (url or os.getenv("SUPABASE_URL", "")).rstrip("/")
        self._key = key or os.getenv("SUPABASE_KEY", "")
        self._timeout = timeout
        self._transport = transport
        self._available = bool(self._url and self._key)

        if self._available:
            logger.info(f"[SupabaseREST] Configured for {self._url[:40]}...")
        else:
            logger.warning("[SupabaseREST] Missing SUPABASE_URL or SUPABASE_KEY")

    @property
    def is_available(self) -> bool:
        return self._available

    def table(self, name: str) -> TableQuery:
        return TableQuery(self._url, self._key, name, self._timeout, self._transport)
