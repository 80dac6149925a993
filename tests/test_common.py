"""Tests for common utilities: problem details, pagination, logging, config."""

from __future__ import annotations

import json
import logging

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel

from leaveflow.common.exceptions import (
    ConsistencyFault,
    EligibilityException,
    InsufficientBalanceException,
    NotFoundException,
    register_exception_handlers,
)
from leaveflow.common.logging import (
    LeaveflowJsonFormatter,
    RequestIdFilter,
    request_id_var,
    setup_logging,
)
from leaveflow.common.pagination import PaginationMeta
from leaveflow.config import Settings


# ═════════════════════════════════════════════════════════════════════
# Problem details
# ═════════════════════════════════════════════════════════════════════


class Payload(BaseModel):
    count: int


def _problem_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/missing")
    async def missing():
        raise NotFoundException("LeaveRequest", "abc")

    @app.get("/ineligible")
    async def ineligible():
        raise EligibilityException(["start date is in the past", "no business days in range"])

    @app.get("/broken")
    async def broken():
        raise ConsistencyFault("ledger drift")

    @app.post("/payload")
    async def payload(body: Payload):
        return body

    return app


@pytest.fixture
async def problem_client():
    async with AsyncClient(
        transport=ASGITransport(app=_problem_app()), base_url="http://test",
    ) as ac:
        yield ac


class TestProblemDetails:
    async def test_not_found(self, problem_client: AsyncClient):
        resp = await problem_client.get("/missing")
        assert resp.status_code == 404
        assert resp.headers["content-type"].startswith("application/problem+json")
        body = resp.json()
        assert body["type"].endswith("/not-found")
        assert body["title"] == "LeaveRequest Not Found"
        assert body["instance"] == "/missing"
        assert "errors" not in body

    async def test_eligibility_lists_every_reason(self, problem_client: AsyncClient):
        resp = await problem_client.get("/ineligible")
        body = resp.json()
        assert resp.status_code == 422
        assert body["errors"]["eligibility"] == [
            "start date is in the past",
            "no business days in range",
        ]
        assert body["detail"] == "start date is in the past; no business days in range"

    async def test_server_fault_is_logged(self, problem_client: AsyncClient, caplog):
        with caplog.at_level(logging.ERROR, logger="leaveflow.common.exceptions"):
            resp = await problem_client.get("/broken")
        assert resp.status_code == 500
        assert resp.json()["detail"] == "ledger drift"
        assert any("consistency-fault" in r.getMessage() for r in caplog.records)

    async def test_request_validation(self, problem_client: AsyncClient):
        resp = await problem_client.post("/payload", json={"count": "many"})
        assert resp.status_code == 422
        assert "count" in resp.json()["errors"]

    def test_insufficient_balance_is_an_eligibility_failure(self):
        exc = InsufficientBalanceException(available=1, requested=3)
        assert isinstance(exc, EligibilityException)
        assert exc.reasons == ["insufficient balance: 1 available, 3 requested"]


# ═════════════════════════════════════════════════════════════════════
# Pagination
# ═════════════════════════════════════════════════════════════════════


class TestPaginationMeta:
    def test_middle_page(self):
        meta = PaginationMeta.build(page=2, page_size=10, total=35)
        assert meta.total_pages == 4
        assert meta.has_next is True
        assert meta.has_prev is True

    def test_empty(self):
        meta = PaginationMeta.build(page=1, page_size=10, total=0)
        assert meta.total_pages == 0
        assert meta.has_next is False
        assert meta.has_prev is False

    def test_exact_multiple(self):
        meta = PaginationMeta.build(page=3, page_size=5, total=15)
        assert meta.total_pages == 3
        assert meta.has_next is False


# ═════════════════════════════════════════════════════════════════════
# Logging
# ═════════════════════════════════════════════════════════════════════


def _record(message: str = "reserved 3 day(s)") -> logging.LogRecord:
    return logging.LogRecord(
        name="leaveflow.balances.ledger",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )


class TestLogging:
    def test_filter_stamps_request_id(self):
        record = _record()
        token = request_id_var.set("req-123")
        try:
            RequestIdFilter().filter(record)
        finally:
            request_id_var.reset(token)
        assert record.request_id == "req-123"

    def test_filter_outside_request(self):
        record = _record()
        RequestIdFilter().filter(record)
        assert record.request_id == "-"

    def test_json_formatter(self):
        formatter = LeaveflowJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(request_id)s %(message)s",
        )
        record = _record()
        RequestIdFilter().filter(record)

        payload = json.loads(formatter.format(record))

        assert payload["message"] == "reserved 3 day(s)"
        assert payload["level"] == "INFO"
        assert payload["name"] == "leaveflow.balances.ledger"
        assert payload["request_id"] == "-"
        assert payload["timestamp"]

    def test_setup_is_idempotent(self):
        root = logging.getLogger()
        setup_logging("DEBUG", json_output=True)
        setup_logging("INFO")
        ours = [h for h in root.handlers if getattr(h, "_leaveflow", False)]
        assert len(ours) == 1
        assert not isinstance(ours[0].formatter, LeaveflowJsonFormatter)
        assert root.level == logging.INFO


# ═════════════════════════════════════════════════════════════════════
# Config
# ═════════════════════════════════════════════════════════════════════


class TestSettings:
    def test_cors_origins_parsed(self):
        s = Settings(JWT_SECRET="x", CORS_ORIGINS='["https://a.test", "https://b.test"]')
        assert s.cors_origins_list == ["https://a.test", "https://b.test"]

    def test_cors_origins_fallback(self):
        s = Settings(JWT_SECRET="x", CORS_ORIGINS="not json")
        assert s.cors_origins_list == ["http://localhost:3000"]

    def test_ledger_defaults(self, monkeypatch):
        monkeypatch.delenv("LEDGER_STRICT", raising=False)
        s = Settings(JWT_SECRET="x", _env_file=None)
        assert s.LEDGER_STRICT is True
        assert s.LEDGER_RETRY_ATTEMPTS == 3
