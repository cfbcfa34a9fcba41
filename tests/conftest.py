from __future__ import annotations

import itertools
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Sequence
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from repair_desk.config import Settings
from repair_desk.deps import get_notifier, get_settings, get_store
from repair_desk.mailer import Attachment, Notifier, SendError
from repair_desk.main import app
from repair_desk.store import RecordNotFound, Search, StoreError


class FakeStore:
    """In-memory stand-in for SupabaseStore with the same call surface."""

    def __init__(self) -> None:
        self.tables: dict[str, dict[str, dict[str, Any]]] = {"repair_requests": {}, "repair_catalog": {}}
        self.calls: list[tuple[str, str]] = []
        self.fail_with: str | None = None
        self._clock = itertools.count()

    def _enter(self, op: str, table: str) -> None:
        self.calls.append((op, table))
        if self.fail_with:
            raise StoreError(self.fail_with, status_code=400)

    @staticmethod
    def _project(row: dict[str, Any], columns: str) -> dict[str, Any]:
        if columns == "*":
            return dict(row)
        return {name: row.get(name) for name in columns.split(",")}

    def seed(self, table: str, **row: Any) -> dict[str, Any]:
        record_id = str(row.pop("id", uuid4()))
        created = datetime(2026, 10, 1, tzinfo=timezone.utc) + timedelta(minutes=next(self._clock))
        record = {"id": record_id, "created_at": created.isoformat(), **row}
        self.tables[table][record_id] = record
        return record

    def count(self, op: str) -> int:
        return sum(1 for name, _ in self.calls if name == op)

    async def insert(self, table: str, row: dict[str, Any], columns: str = "*") -> dict[str, Any]:
        self._enter("insert", table)
        return self._project(self.seed(table, **row), columns)

    async def update(
        self,
        table: str,
        record_id: str,
        patch: dict[str, Any],
        columns: str = "*",
        expect: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        self._enter("update", table)
        row = self.tables[table].get(record_id)
        if row is None or any(row.get(k) != v for k, v in (expect or {}).items()):
            raise RecordNotFound(table, record_id)
        row.update(patch)
        return self._project(row, columns)

    async def get_by_id(self, table: str, record_id: str, columns: str = "*") -> dict[str, Any]:
        self._enter("get", table)
        row = self.tables[table].get(record_id)
        if row is None:
            raise RecordNotFound(table, record_id)
        return self._project(row, columns)

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        search: Search | None = None,
        order: Sequence[str] = (),
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        self._enter("select", table)
        rows = [r for r in self.tables[table].values() if all(r.get(k) == v for k, v in (filters or {}).items())]
        if search is not None:
            term = search.term.lower()
            rows = [r for r in rows if any(term in str(r.get(f) or "").lower() for f in search.fields)]
        for column in reversed(list(order)):
            name = column.lstrip("-")
            rows.sort(key=lambda r: str(r.get(name) or ""), reverse=column.startswith("-"))
        if limit is not None:
            rows = rows[:limit]
        return [self._project(r, columns) for r in rows]

    async def delete(self, table: str, record_id: str) -> None:
        self._enter("delete", table)
        if self.tables[table].pop(record_id, None) is None:
            raise RecordNotFound(table, record_id)

    async def rpc(self, name: str, params: dict[str, Any] | None = None) -> Any:
        self._enter("rpc", name)
        assert name == "get_brands"
        brands = sorted({r["brand"] for r in self.tables["repair_catalog"].values()})
        return [{"brand": b} for b in brands]


@dataclass
class SentMail:
    sender: str
    to: str
    subject: str
    html: str
    attachments: tuple[Attachment, ...]


class FakeMailer:
    stage = "send_mailgun"

    def __init__(self) -> None:
        self.sent: list[SentMail] = []
        self.error: str | None = None

    async def send(
        self,
        sender: str,
        to: str,
        subject: str,
        html: str,
        attachments: Sequence[Attachment] = (),
    ) -> str:
        if self.error:
            raise SendError(self.error)
        self.sent.append(SentMail(sender, to, subject, html, tuple(attachments)))
        return f"<msg-{len(self.sent)}@mg.test>"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://project.supabase.test",
        supabase_service_role_key="service-role-key",
        mailgun_api_key="key-test",
        mailgun_domain="mg.test",
        mail_from="GSM Team <noreply@mg.test>",
    )


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def client(settings: Settings, store: FakeStore, mailer: FakeMailer):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_notifier] = lambda: Notifier(mailer, settings.sender(), settings.mail_debug_to)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
