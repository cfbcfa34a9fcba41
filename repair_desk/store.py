from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

import httpx

from repair_desk.config import Settings

logger = logging.getLogger(__name__)

REQUESTS_TABLE = "repair_requests"
CATALOG_TABLE = "repair_catalog"

# Characters with a meaning in PostgREST's or=(...) grammar.
_SEARCH_RESERVED = re.compile(r"[,()*\"\\]")


class StoreError(RuntimeError):
    """The remote store rejected a call or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RecordNotFound(LookupError):
    def __init__(self, table: str, record_id: str) -> None:
        super().__init__(f"No row in {table} with id {record_id}")
        self.table = table
        self.record_id = record_id


@dataclass(frozen=True)
class Search:
    """Case-insensitive substring match ORed across ``fields``."""

    term: str
    fields: Sequence[str]

    def as_param(self) -> str | None:
        term = _SEARCH_RESERVED.sub("", self.term).strip()
        if not term or not self.fields:
            return None
        parts = ",".join(f"{name}.ilike.*{term}*" for name in self.fields)
        return f"({parts})"


def _order_param(order: Iterable[str]) -> str:
    items = []
    for column in order:
        if column.startswith("-"):
            items.append(f"{column[1:]}.desc")
        else:
            items.append(f"{column}.asc")
    return ",".join(items)


class SupabaseStore:
    """Row-level access to the Supabase REST (PostgREST) endpoint."""

    def __init__(
        self,
        url: str,
        service_key: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = f"{url.rstrip('/')}/rest/v1"
        self.service_key = service_key
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseStore":
        url, key = settings.require_store()
        return cls(url, key, timeout=settings.supabase_timeout)

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: list[tuple[str, str]] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        url = f"{self.base_url}/{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=self._headers(prefer),
                )
        except httpx.HTTPError as exc:
            raise StoreError(f"Store unreachable: {exc}") from exc

        if resp.status_code >= 400:
            raise StoreError(self._error_message(resp), status_code=resp.status_code)
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise StoreError(f"Malformed store response ({resp.status_code})") from exc

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            data = resp.json()
        except ValueError:
            return f"Store error {resp.status_code}: {resp.text.strip()}"
        if isinstance(data, dict):
            message = data.get("message") or data.get("error") or data.get("msg")
            if message:
                return str(message)
        return f"Store error {resp.status_code}"

    async def insert(self, table: str, row: dict[str, Any], columns: str = "*") -> dict[str, Any]:
        data = await self._request(
            "POST",
            table,
            params=[("select", columns)],
            json=row,
            prefer="return=representation",
        )
        if not isinstance(data, list) or not data:
            raise StoreError(f"Insert into {table} returned no row")
        return data[0]

    async def update(
        self,
        table: str,
        record_id: str,
        patch: dict[str, Any],
        columns: str = "*",
        expect: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        params = [("id", f"eq.{record_id}")]
        for key, value in (expect or {}).items():
            params.append((key, f"eq.{value}"))
        params.append(("select", columns))
        data = await self._request(
            "PATCH",
            table,
            params=params,
            json=patch,
            prefer="return=representation",
        )
        if not data:
            raise RecordNotFound(table, record_id)
        return data[0]

    async def get_by_id(self, table: str, record_id: str, columns: str = "*") -> dict[str, Any]:
        data = await self._request(
            "GET",
            table,
            params=[("id", f"eq.{record_id}"), ("select", columns), ("limit", "1")],
        )
        if not data:
            raise RecordNotFound(table, record_id)
        return data[0]

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        search: Search | None = None,
        order: Sequence[str] = (),
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        params: list[tuple[str, str]] = [("select", columns)]
        for key, value in (filters or {}).items():
            params.append((key, f"eq.{value}"))
        if search is not None:
            or_param = search.as_param()
            if or_param:
                params.append(("or", or_param))
        if order:
            params.append(("order", _order_param(order)))
        if limit is not None:
            params.append(("limit", str(limit)))
        data = await self._request("GET", table, params=params)
        return list(data or [])

    async def delete(self, table: str, record_id: str) -> None:
        data = await self._request(
            "DELETE",
            table,
            params=[("id", f"eq.{record_id}")],
            prefer="return=representation",
        )
        if not data:
            raise RecordNotFound(table, record_id)

    async def rpc(self, name: str, params: dict[str, Any] | None = None) -> Any:
        return await self._request("POST", f"rpc/{name}", json=params or {})
