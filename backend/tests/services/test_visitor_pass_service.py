"""Tests for visitor pass persistence and gate check-in."""

from __future__ import annotations

import os
import uuid
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import update

from app.db.session import get_sessionmaker
from app.models import Compound, SecurityLevel, VisitorPassStatus
from app.services import visitor_pass_service
from app.services.visitor_pass_lifecycle import (
    CheckInError,
    CheckInErrorCode,
    CheckInSuccess,
    InvalidVisitorPassRequest,
    PassTransitionError,
    VisitorPassData,
)

pytestmark = pytest.mark.asyncio

NOW = datetime(2026, 6, 1, 9, 0, tzinfo=UTC)


def _data(resident_id: uuid.UUID, **overrides: object) -> VisitorPassData:
    values: dict[str, object] = {
        "resident_user_id": resident_id,
        "visitor_name": "Omar Farouk",
        "visitor_phone": "+201112223334",
        "expected_arrival": NOW + timedelta(hours=1),
    }
    values.update(overrides)
    return VisitorPassData(**values)  # type: ignore[arg-type]


async def _issue(seeded: dict[str, uuid.UUID], **overrides: object):
    sessionmaker = get_sessionmaker(os.environ["DATABASE_URL"])
    async with sessionmaker() as session:
        return await visitor_pass_service.create_visitor_pass(
            session,
            unit_id=seeded["unit_id"],
            data=_data(seeded["resident_id"], **overrides),
            now=NOW,
        )


async def test_standard_compound_activates_pass_on_issue(
    seeded: dict[str, uuid.UUID],
) -> None:
    pass_ = await _issue(seeded)

    assert pass_.status is VisitorPassStatus.ACTIVE
    assert pass_.unit.unit_number == "A-101"
    assert str(pass_.id) in pass_.qr_payload


async def test_premium_compound_holds_pass_until_window_opens(
    seeded: dict[str, uuid.UUID],
) -> None:
    sessionmaker = get_sessionmaker(os.environ["DATABASE_URL"])
    async with sessionmaker() as session:
        await session.execute(
            update(Compound)
            .where(Compound.id == seeded["compound_id"])
            .values(security_level=SecurityLevel.PREMIUM)
        )
        await session.commit()

    pass_ = await _issue(seeded, expected_arrival=NOW + timedelta(hours=5))
    assert pass_.status is VisitorPassStatus.PENDING

    async with sessionmaker() as session:
        assert await visitor_pass_service.activate_due_passes(session, now=NOW) == 0
        activated = await visitor_pass_service.activate_due_passes(
            session, now=NOW + timedelta(hours=3)
        )
        stored = await visitor_pass_service.get_visitor_pass(session, pass_id=pass_.id)

    assert activated == 1
    assert stored is not None
    assert stored.status is VisitorPassStatus.ACTIVE


async def test_issue_validates_unit_and_window(seeded: dict[str, uuid.UUID]) -> None:
    sessionmaker = get_sessionmaker(os.environ["DATABASE_URL"])
    async with sessionmaker() as session:
        with pytest.raises(visitor_pass_service.UnitNotFound):
            await visitor_pass_service.create_visitor_pass(
                session,
                unit_id=uuid.uuid4(),
                data=_data(seeded["resident_id"]),
                now=NOW,
            )
        with pytest.raises(InvalidVisitorPassRequest):
            await visitor_pass_service.create_visitor_pass(
                session,
                unit_id=seeded["unit_id"],
                data=_data(seeded["resident_id"], expected_arrival=NOW),
                now=NOW,
            )


async def test_check_in_then_rescan(seeded: dict[str, uuid.UUID]) -> None:
    pass_ = await _issue(seeded)
    sessionmaker = get_sessionmaker(os.environ["DATABASE_URL"])
    async with sessionmaker() as session:
        first = await visitor_pass_service.check_in_visitor(
            session,
            scanned_payload=pass_.qr_payload,
            now=NOW,
            guard_id=seeded["guard_id"],
        )
        second = await visitor_pass_service.check_in_visitor(
            session, scanned_payload=pass_.qr_payload, now=NOW
        )
        stored = await visitor_pass_service.get_visitor_pass(session, pass_id=pass_.id)

    assert isinstance(first, CheckInSuccess)
    assert first.compound_name == "Palm Hills"
    assert isinstance(second, CheckInError)
    assert second.code is CheckInErrorCode.ALREADY_CHECKED_IN
    assert stored is not None
    assert stored.status is VisitorPassStatus.USED
    assert stored.entry_time is not None
    assert stored.checked_in_by_user_id == seeded["guard_id"]


async def test_concurrent_gate_scans_admit_once(seeded: dict[str, uuid.UUID]) -> None:
    pass_ = await _issue(seeded)
    sessionmaker = get_sessionmaker(os.environ["DATABASE_URL"])

    async with sessionmaker() as gate_a, sessionmaker() as gate_b:
        seen_a = await visitor_pass_service.evaluate_check_in(
            gate_a, scanned_payload=pass_.qr_payload, now=NOW
        )
        seen_b = await visitor_pass_service.evaluate_check_in(
            gate_b, scanned_payload=pass_.qr_payload, now=NOW
        )
        assert isinstance(seen_a, CheckInSuccess)
        assert isinstance(seen_b, CheckInSuccess)

        result_a = await visitor_pass_service.commit_check_in(gate_a, seen_a)
        result_b = await visitor_pass_service.commit_check_in(gate_b, seen_b)

    outcomes = [result_a, result_b]
    assert sum(isinstance(o, CheckInSuccess) for o in outcomes) == 1
    (loser,) = [o for o in outcomes if isinstance(o, CheckInError)]
    assert loser.code is CheckInErrorCode.ALREADY_CHECKED_IN


async def test_expiry_sweep_beats_late_scan(seeded: dict[str, uuid.UUID]) -> None:
    pass_ = await _issue(seeded)
    sessionmaker = get_sessionmaker(os.environ["DATABASE_URL"])

    async with sessionmaker() as gate, sessionmaker() as sweeper:
        seen = await visitor_pass_service.evaluate_check_in(
            gate, scanned_payload=pass_.qr_payload, now=NOW
        )
        assert isinstance(seen, CheckInSuccess)

        expired = await visitor_pass_service.expire_overdue_passes(
            sweeper, now=NOW + timedelta(hours=6)
        )
        assert [p.id for p in expired] == [pass_.id]

        result = await visitor_pass_service.commit_check_in(gate, seen)

    assert isinstance(result, CheckInError)
    assert result.code is CheckInErrorCode.PASS_EXPIRED


async def test_cancelled_pass_is_refused(seeded: dict[str, uuid.UUID]) -> None:
    pass_ = await _issue(seeded)
    sessionmaker = get_sessionmaker(os.environ["DATABASE_URL"])
    async with sessionmaker() as session:
        cancelled = await visitor_pass_service.cancel_visitor_pass(
            session, pass_id=pass_.id, now=NOW
        )
        again = await visitor_pass_service.cancel_visitor_pass(
            session, pass_id=pass_.id, now=NOW
        )
        scan = await visitor_pass_service.check_in_visitor(
            session, scanned_payload=pass_.qr_payload, now=NOW
        )

        with pytest.raises(visitor_pass_service.VisitorPassNotFound):
            await visitor_pass_service.cancel_visitor_pass(
                session, pass_id=uuid.uuid4(), now=NOW
            )

    assert not isinstance(cancelled, PassTransitionError)
    assert cancelled.status is VisitorPassStatus.CANCELLED
    assert cancelled.cancelled_at is not None
    assert isinstance(again, PassTransitionError)
    assert again.status is VisitorPassStatus.CANCELLED
    assert isinstance(scan, CheckInError)
    assert scan.code is CheckInErrorCode.PASS_CANCELLED


async def test_expiry_sweep_leaves_used_and_fresh_passes(
    seeded: dict[str, uuid.UUID],
) -> None:
    used = await _issue(seeded)
    fresh = await _issue(seeded, expected_arrival=NOW + timedelta(days=1))
    sessionmaker = get_sessionmaker(os.environ["DATABASE_URL"])
    async with sessionmaker() as session:
        admitted = await visitor_pass_service.check_in_visitor(
            session, scanned_payload=used.qr_payload, now=NOW
        )
        assert isinstance(admitted, CheckInSuccess)

        expired = await visitor_pass_service.expire_overdue_passes(
            session, now=NOW + timedelta(hours=8)
        )
        stored_fresh = await visitor_pass_service.get_visitor_pass(
            session, pass_id=fresh.id
        )

    assert expired == []
    assert stored_fresh is not None
    assert stored_fresh.status is VisitorPassStatus.ACTIVE


async def test_unknown_and_garbled_scans(seeded: dict[str, uuid.UUID]) -> None:
    pass_ = await _issue(seeded)
    forged = pass_.qr_payload.replace(str(pass_.id), str(uuid.uuid4()))
    sessionmaker = get_sessionmaker(os.environ["DATABASE_URL"])
    async with sessionmaker() as session:
        missing = await visitor_pass_service.check_in_visitor(
            session, scanned_payload=forged, now=NOW
        )
        garbled = await visitor_pass_service.check_in_visitor(
            session, scanned_payload="{broken", now=NOW
        )

    assert isinstance(missing, CheckInError)
    assert missing.code is CheckInErrorCode.PASS_NOT_FOUND
    assert isinstance(garbled, CheckInError)
    assert garbled.code is CheckInErrorCode.INVALID_PASS_FORMAT
