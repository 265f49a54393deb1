"""
HTTP row store speaking PostgREST conventions (as exposed by Supabase).

  GET    {base}/rest/v1/{table}?select=*
  GET    {base}/rest/v1/{table}?select=*&id=eq.{id}
  POST   {base}/rest/v1/{table}            Prefer: return=representation
  PATCH  {base}/rest/v1/{table}?id=eq.{id}
  DELETE {base}/rest/v1/{table}?id=eq.{id}
"""
import logging
from typing import List, Optional, Dict, Any

import requests

from .store import RowStore, RowStoreError

logger = logging.getLogger(__name__)


class RestRowStore(RowStore):
    """Row store backed by a PostgREST endpoint."""

    def __init__(self, base_url: str, api_key: str = "", timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if api_key:
            self.session.headers.update({
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            })

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def _request(self, method: str, table: str, **kwargs) -> requests.Response:
        try:
            r = self.session.request(method, self._url(table), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{method} {table} failed: {e}")
            raise RowStoreError(f"{method} {table} failed: {e}") from e
        if not r.ok:
            logger.error(f"{method} {table} returned {r.status_code}: {r.text[:200]}")
            raise RowStoreError(f"{method} {table} returned {r.status_code}")
        return r

    def select_all(self, table: str) -> List[Dict[str, Any]]:
        r = self._request("GET", table, params={"select": "*"})
        return list(r.json() or [])

    def select_by_id(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        r = self._request("GET", table, params={"select": "*", "id": f"eq.{row_id}"})
        rows = r.json() or []
        return rows[0] if rows else None

    def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        payload = {k: v for k, v in record.items() if k != "id"}
        r = self._request(
            "POST", table,
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        rows = r.json() or []
        if isinstance(rows, dict):
            return rows
        if not rows:
            raise RowStoreError(f"POST {table} returned no row")
        return rows[0]

    def update_by_id(self, table: str, row_id: str, partial: Dict[str, Any]) -> None:
        payload = {k: v for k, v in partial.items() if k != "id"}
        self._request("PATCH", table, params={"id": f"eq.{row_id}"}, json=payload)

    def delete_by_id(self, table: str, row_id: str) -> None:
        self._request("DELETE", table, params={"id": f"eq.{row_id}"})
