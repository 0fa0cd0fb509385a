"""Tests for ticket issuance.

Run with: pytest tests/test_ticket_issuer.py -v
"""
import uuid

import pytest

from shared.utils.errors import StoreUnavailableError
from services.tickets.models.ticket import TicketRecord, TicketStatus, ticket_key
from services.tickets.services.ticket_issuer import TicketIssuer


class TestTicketIssuer:

    async def test_issue_returns_uuid_and_ttl(self, issuer):
        issued = await issuer.issue("P1")

        assert uuid.UUID(issued.ticket_id).version == 4
        assert issued.expires_in == 180

    async def test_issue_writes_valid_record(self, issuer, store, clock):
        issued = await issuer.issue("P1")

        record = TicketRecord.from_store(await store.get(ticket_key(issued.ticket_id)))
        assert record.passenger_id == "P1"
        assert record.status == TicketStatus.VALID
        assert record.issued_at == int(clock().timestamp() * 1000)
        assert store.ttl_remaining(ticket_key(issued.ticket_id)) == 180

    async def test_each_call_issues_independent_ticket(self, issuer, store):
        first = await issuer.issue("P1")
        second = await issuer.issue("P1")

        assert first.ticket_id != second.ticket_id
        assert await store.get(ticket_key(first.ticket_id)) is not None
        assert await store.get(ticket_key(second.ticket_id)) is not None

    async def test_ttl_is_configurable(self, store, clock):
        issuer = TicketIssuer(store, ttl_seconds=60, clock=clock)

        issued = await issuer.issue("P1")

        assert issued.expires_in == 60
        clock.advance(60)
        assert await store.get(ticket_key(issued.ticket_id)) is None

    async def test_store_failure_propagates(self, issuer, store):
        store.available = False

        with pytest.raises(StoreUnavailableError):
            await issuer.issue("P1")

    async def test_find_owned(self, issuer, clock):
        issued = await issuer.issue("P1")

        assert (await issuer.find_owned(issued.ticket_id, "P1")).passenger_id == "P1"
        assert await issuer.find_owned(issued.ticket_id, "P2") is None
        assert await issuer.find_owned("unknown", "P1") is None
        clock.advance(180)
        assert await issuer.find_owned(issued.ticket_id, "P1") is None
