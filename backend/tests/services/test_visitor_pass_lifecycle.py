"""Tests for the visitor pass state machine and QR codec."""

from __future__ import annotations

import json
import uuid
from datetime import UTC, datetime, timedelta

import pytest

from app.models import CommunityUnit, Compound, VisitorPass, VisitorPassStatus
from app.services.visitor_pass_lifecycle import (
    ALREADY_TERMINAL,
    MAX_QR_PAYLOAD_LENGTH,
    CheckInError,
    CheckInErrorCode,
    CheckInSuccess,
    InvalidVisitorPassRequest,
    PassPolicy,
    PassTransition,
    PassTransitionError,
    VisitorPassData,
    activate,
    apply_transition,
    cancel,
    check_in,
    create_pass,
    expire,
    expire_due,
    parse_qr_payload,
)

NOW = datetime(2026, 6, 1, 9, 0, tzinfo=UTC)
POLICY = PassPolicy(grace_period=timedelta(hours=2), default_validity=timedelta(hours=4))


def _unit() -> CommunityUnit:
    compound = Compound(id=uuid.uuid4(), name="Palm Hills")
    unit = CommunityUnit(id=uuid.uuid4(), compound_id=compound.id, unit_number="A-101")
    unit.compound = compound
    return unit


def _data(**overrides: object) -> VisitorPassData:
    values: dict[str, object] = {
        "resident_user_id": uuid.uuid4(),
        "visitor_name": "Layla Hassan",
        "visitor_phone": "+201001234567",
        "expected_arrival": NOW + timedelta(hours=1),
    }
    values.update(overrides)
    return VisitorPassData(**values)  # type: ignore[arg-type]


def _pass(**overrides: object) -> VisitorPass:
    return create_pass(_data(**overrides), _unit(), now=NOW)


def _store(*passes: VisitorPass):
    records = {pass_.id: pass_ for pass_ in passes}
    return records.get


def _scan(pass_: VisitorPass, store) -> CheckInSuccess | CheckInError:
    outcome = check_in(store, pass_.qr_payload, NOW)
    if isinstance(outcome, CheckInSuccess):
        assert apply_transition(pass_, outcome.transition)
    return outcome


def test_create_issues_pending_pass_with_stable_payload() -> None:
    pass_ = _pass()

    assert pass_.status is VisitorPassStatus.PENDING
    document = json.loads(pass_.qr_payload)
    assert document["id"] == str(pass_.id)
    assert document["unit_number"] == "A-101"
    assert document["compound_name"] == "Palm Hills"
    assert list(document) == sorted(document)


def test_qr_payload_round_trips_pass_id() -> None:
    pass_ = _pass()

    payload = parse_qr_payload(pass_.qr_payload)

    assert payload is not None
    assert payload.pass_id == pass_.id
    assert payload.visitor_name == "Layla Hassan"
    assert payload.expected_arrival == NOW + timedelta(hours=1)


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[]",
        json.dumps({"id": str(uuid.uuid4())}),
        json.dumps(
            {
                "id": "not-a-uuid",
                "visitor_name": "X",
                "unit_number": "A-1",
                "compound_name": "C",
                "expected_arrival": NOW.isoformat(),
            }
        ),
        "[" * 1500 + "]" * 1500,
        "[" * 100_000 + "]" * 100_000,
        '{"a":' * 600 + "1" + "}" * 600,
    ],
)
def test_malformed_payloads_are_invalid_format(raw: str) -> None:
    outcome = check_in(_store(), raw, NOW)

    assert isinstance(outcome, CheckInError)
    assert outcome.code is CheckInErrorCode.INVALID_PASS_FORMAT


def test_deeply_nested_payload_within_size_limit_is_not_a_pass() -> None:
    raw = "[" * 2000 + "]" * 2000

    assert len(raw) <= MAX_QR_PAYLOAD_LENGTH
    assert parse_qr_payload(raw) is None


def test_scan_from_another_compound_is_refused() -> None:
    pass_ = _pass()
    store = _store(pass_)

    foreign = check_in(store, pass_.qr_payload, NOW, compound_id=uuid.uuid4())
    home = check_in(store, pass_.qr_payload, NOW, compound_id=pass_.unit.compound_id)

    assert isinstance(foreign, CheckInError)
    assert foreign.code is CheckInErrorCode.COMPOUND_ACCESS_DENIED
    assert foreign.pass_id == pass_.id
    assert pass_.status is VisitorPassStatus.PENDING
    assert isinstance(home, CheckInSuccess)


def test_create_rejects_bad_visit_window() -> None:
    with pytest.raises(InvalidVisitorPassRequest):
        _pass(expected_arrival=NOW - timedelta(minutes=5))
    with pytest.raises(InvalidVisitorPassRequest):
        _pass(expected_departure=NOW + timedelta(minutes=30))
    with pytest.raises(InvalidVisitorPassRequest):
        _pass(visitor_name="  ")


def test_pending_pass_scans_once() -> None:
    pass_ = _pass()
    store = _store(pass_)

    first = _scan(pass_, store)
    second = _scan(pass_, store)

    assert isinstance(first, CheckInSuccess)
    assert first.unit_number == "A-101"
    assert first.compound_name == "Palm Hills"
    assert first.entry_time == NOW
    assert pass_.status is VisitorPassStatus.USED
    assert pass_.entry_time == NOW
    assert isinstance(second, CheckInError)
    assert second.code is CheckInErrorCode.ALREADY_CHECKED_IN


def test_concurrent_scans_only_one_transition_applies() -> None:
    pass_ = _pass()
    store = _store(pass_)

    left = check_in(store, pass_.qr_payload, NOW)
    right = check_in(store, pass_.qr_payload, NOW)
    assert isinstance(left, CheckInSuccess)
    assert isinstance(right, CheckInSuccess)

    assert apply_transition(pass_, left.transition) is True
    assert apply_transition(pass_, right.transition) is False
    assert isinstance(check_in(store, pass_.qr_payload, NOW), CheckInError)


def test_unknown_pass_is_not_found() -> None:
    pass_ = _pass()

    outcome = check_in(_store(), pass_.qr_payload, NOW)

    assert isinstance(outcome, CheckInError)
    assert outcome.code is CheckInErrorCode.PASS_NOT_FOUND
    assert outcome.pass_id == pass_.id


@pytest.mark.parametrize(
    ("status", "code"),
    [
        (VisitorPassStatus.CANCELLED, CheckInErrorCode.PASS_CANCELLED),
        (VisitorPassStatus.EXPIRED, CheckInErrorCode.PASS_EXPIRED),
        (VisitorPassStatus.USED, CheckInErrorCode.ALREADY_CHECKED_IN),
    ],
)
def test_terminal_passes_are_immutable(
    status: VisitorPassStatus, code: CheckInErrorCode
) -> None:
    pass_ = _pass()
    pass_.status = status

    scan = check_in(_store(pass_), pass_.qr_payload, NOW)
    cancellation = cancel(pass_, NOW)

    assert isinstance(scan, CheckInError)
    assert scan.code is code
    assert isinstance(cancellation, PassTransitionError)
    assert cancellation.code == ALREADY_TERMINAL
    assert expire(pass_, NOW + timedelta(days=1), POLICY) is None
    assert activate(pass_, NOW, POLICY) is None
    assert pass_.status is status


def test_scan_reads_stored_status_not_payload() -> None:
    pass_ = _pass()
    pass_.status = VisitorPassStatus.CANCELLED

    # The payload still says pending; the stored record decides.
    assert json.loads(pass_.qr_payload)["status"] == "pending"
    outcome = check_in(_store(pass_), pass_.qr_payload, NOW)

    assert isinstance(outcome, CheckInError)
    assert outcome.code is CheckInErrorCode.PASS_CANCELLED


def test_activate_waits_for_grace_window() -> None:
    pass_ = _pass(expected_arrival=NOW + timedelta(hours=3))

    assert activate(pass_, NOW, POLICY) is None
    transition = activate(pass_, NOW + timedelta(hours=1), POLICY)

    assert isinstance(transition, PassTransition)
    assert transition.to_status is VisitorPassStatus.ACTIVE
    assert apply_transition(pass_, transition)
    assert pass_.status is VisitorPassStatus.ACTIVE


def test_activate_immediately_policy() -> None:
    pass_ = _pass(expected_arrival=NOW + timedelta(days=2))
    policy = PassPolicy(activate_immediately=True)

    transition = activate(pass_, NOW, policy)

    assert transition is not None
    assert transition.to_status is VisitorPassStatus.ACTIVE


def test_expire_uses_departure_or_default_validity() -> None:
    with_departure = _pass(expected_departure=NOW + timedelta(hours=2))
    without_departure = _pass()

    assert expire(with_departure, NOW + timedelta(hours=1), POLICY) is None
    transition = expire(with_departure, NOW + timedelta(hours=2), POLICY)
    assert transition is not None
    assert transition.stamps == {"expired_at": NOW + timedelta(hours=2)}

    assert expire(without_departure, NOW + timedelta(hours=4), POLICY) is None
    assert expire(without_departure, NOW + timedelta(hours=5), POLICY) is not None


def test_expire_due_skips_used_passes() -> None:
    used = _pass()
    used.status = VisitorPassStatus.USED
    overdue = _pass()
    fresh = _pass(expected_arrival=NOW + timedelta(hours=20))

    transitions = expire_due([used, overdue, fresh], NOW + timedelta(hours=6), POLICY)

    assert [t.pass_id for t in transitions] == [overdue.id]


def test_expiry_and_check_in_race_single_winner() -> None:
    pass_ = _pass()
    scan = check_in(_store(pass_), pass_.qr_payload, NOW)
    sweep = expire(pass_, NOW + timedelta(hours=6), POLICY)
    assert isinstance(scan, CheckInSuccess)
    assert sweep is not None

    assert apply_transition(pass_, sweep) is True
    assert apply_transition(pass_, scan.transition) is False
    assert pass_.status is VisitorPassStatus.EXPIRED


def test_cancel_from_pending_and_active() -> None:
    pending = _pass()
    active = _pass()
    active.status = VisitorPassStatus.ACTIVE

    for pass_ in (pending, active):
        transition = cancel(pass_, NOW)
        assert isinstance(transition, PassTransition)
        assert apply_transition(pass_, transition)
        assert pass_.status is VisitorPassStatus.CANCELLED
        assert pass_.cancelled_at == NOW
