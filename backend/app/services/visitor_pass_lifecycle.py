"""Visitor pass state machine and QR payload codec.

The QR code only points at a pass: the authoritative status is always the
stored record, re-read at scan time. Every state change is returned as a
``PassTransition`` which the caller applies with a compare-and-set against
storage, so concurrent scans or sweeps cannot both win.
"""

from __future__ import annotations

import enum
import json
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from app.models.compound import CommunityUnit
from app.models.visitor_pass import VisitorPass, VisitorPassStatus

TERMINAL_STATUSES: frozenset[VisitorPassStatus] = frozenset(
    {VisitorPassStatus.USED, VisitorPassStatus.EXPIRED, VisitorPassStatus.CANCELLED}
)
SCANNABLE_STATUSES: frozenset[VisitorPassStatus] = frozenset(
    {VisitorPassStatus.PENDING, VisitorPassStatus.ACTIVE}
)

# Version 40 QR codes top out just under 3 KB of byte data.
MAX_QR_PAYLOAD_LENGTH = 4096

_REQUIRED_QR_FIELDS = ("id", "visitor_name", "unit_number", "compound_name", "expected_arrival")

PassLookup = Callable[[uuid.UUID], VisitorPass | None]


class CheckInErrorCode(str, enum.Enum):
    """Why a gate scan was refused."""

    INVALID_PASS_FORMAT = "invalid_pass_format"
    PASS_NOT_FOUND = "pass_not_found"
    PASS_CANCELLED = "pass_cancelled"
    PASS_EXPIRED = "pass_expired"
    ALREADY_CHECKED_IN = "already_checked_in"
    COMPOUND_ACCESS_DENIED = "compound_access_denied"


class InvalidVisitorPassRequest(ValueError):
    """Raised when pass details cannot produce a valid pass."""


@dataclass(slots=True, frozen=True)
class PassPolicy:
    """Timing rules for pass activation and expiry."""

    grace_period: timedelta = timedelta(hours=2)
    default_validity: timedelta = timedelta(hours=4)
    activate_immediately: bool = False


@dataclass(slots=True, frozen=True)
class VisitorPassData:
    """Resident-supplied details for a new pass."""

    resident_user_id: uuid.UUID
    visitor_name: str
    visitor_phone: str
    expected_arrival: datetime
    expected_departure: datetime | None = None
    visit_purpose: str = "Personal visit"
    visitor_id_number: str | None = None
    notes: str | None = None


@dataclass(slots=True, frozen=True)
class QrPayload:
    """Decoded contents of a pass QR code."""

    pass_id: uuid.UUID
    visitor_name: str
    visitor_phone: str | None
    unit_number: str
    compound_name: str
    expected_arrival: datetime
    status: str | None


@dataclass(slots=True, frozen=True)
class PassTransition:
    """Instruction to move a pass to ``to_status`` if still in ``from_statuses``."""

    pass_id: uuid.UUID
    from_statuses: frozenset[VisitorPassStatus]
    to_status: VisitorPassStatus
    stamps: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class PassTransitionError:
    """A requested transition that the lifecycle does not permit."""

    code: str
    message: str
    status: VisitorPassStatus


@dataclass(slots=True, frozen=True)
class CheckInSuccess:
    """Accepted scan with the details a guard screen and notifier need."""

    pass_id: uuid.UUID
    resident_user_id: uuid.UUID
    visitor_name: str
    unit_number: str
    compound_name: str
    entry_time: datetime
    transition: PassTransition


@dataclass(slots=True, frozen=True)
class CheckInError:
    """Refused scan."""

    code: CheckInErrorCode
    message: str
    pass_id: uuid.UUID | None = None


CheckInResult = CheckInSuccess | CheckInError

ALREADY_TERMINAL = "already_terminal"


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def encode_qr_payload(pass_: VisitorPass, unit: CommunityUnit) -> str:
    """Serialize the identity fields of a pass into a stable JSON string."""
    document = {
        "id": str(pass_.id),
        "visitor_name": pass_.visitor_name,
        "visitor_phone": pass_.visitor_phone,
        "unit_number": unit.unit_number,
        "compound_name": unit.compound.name,
        "expected_arrival": as_utc(pass_.expected_arrival).isoformat(),
        "status": pass_.status.value,
    }
    return json.dumps(document, sort_keys=True, separators=(",", ":"))


def parse_qr_payload(raw: str) -> QrPayload | None:
    """Decode a scanned string, returning ``None`` when it is not a pass."""
    if not isinstance(raw, str) or len(raw) > MAX_QR_PAYLOAD_LENGTH:
        return None
    try:
        document = json.loads(raw)
    except (TypeError, ValueError, RecursionError):
        return None
    if not isinstance(document, dict):
        return None
    if any(not document.get(key) for key in _REQUIRED_QR_FIELDS):
        return None
    try:
        pass_id = uuid.UUID(str(document["id"]))
        expected_arrival = datetime.fromisoformat(str(document["expected_arrival"]))
    except ValueError:
        return None
    return QrPayload(
        pass_id=pass_id,
        visitor_name=str(document["visitor_name"]),
        visitor_phone=document.get("visitor_phone"),
        unit_number=str(document["unit_number"]),
        compound_name=str(document["compound_name"]),
        expected_arrival=as_utc(expected_arrival),
        status=document.get("status"),
    )


def create_pass(
    data: VisitorPassData,
    unit: CommunityUnit,
    *,
    now: datetime,
    pass_id: uuid.UUID | None = None,
) -> VisitorPass:
    """Build a new ``pending`` pass with its QR payload."""
    if not data.visitor_name.strip() or not data.visitor_phone.strip():
        raise InvalidVisitorPassRequest("visitor_name and visitor_phone are required")
    arrival = as_utc(data.expected_arrival)
    if arrival <= as_utc(now):
        raise InvalidVisitorPassRequest("Expected arrival must be in the future")
    departure = as_utc(data.expected_departure) if data.expected_departure else None
    if departure is not None and departure <= arrival:
        raise InvalidVisitorPassRequest(
            "Expected departure must be after expected arrival"
        )

    pass_ = VisitorPass(
        id=pass_id or uuid.uuid4(),
        resident_user_id=data.resident_user_id,
        unit_id=unit.id,
        visitor_name=data.visitor_name.strip(),
        visitor_phone=data.visitor_phone.strip(),
        visitor_id_number=data.visitor_id_number,
        visit_purpose=data.visit_purpose or "Personal visit",
        expected_arrival=arrival,
        expected_departure=departure,
        status=VisitorPassStatus.PENDING,
        notes=data.notes,
    )
    pass_.unit = unit
    pass_.qr_payload = encode_qr_payload(pass_, unit)
    return pass_


def valid_until(pass_: VisitorPass, policy: PassPolicy) -> datetime:
    if pass_.expected_departure is not None:
        return as_utc(pass_.expected_departure)
    return as_utc(pass_.expected_arrival) + policy.default_validity


def activate(
    pass_: VisitorPass, now: datetime, policy: PassPolicy
) -> PassTransition | None:
    """``pending -> active`` once the arrival window opens, else no change."""
    if pass_.status is not VisitorPassStatus.PENDING:
        return None
    opens_at = as_utc(pass_.expected_arrival) - policy.grace_period
    if not policy.activate_immediately and as_utc(now) < opens_at:
        return None
    return PassTransition(
        pass_id=pass_.id,
        from_statuses=frozenset({VisitorPassStatus.PENDING}),
        to_status=VisitorPassStatus.ACTIVE,
    )


def expire(
    pass_: VisitorPass, now: datetime, policy: PassPolicy
) -> PassTransition | None:
    """Move an unused pass past its validity window to ``expired``."""
    if pass_.status in TERMINAL_STATUSES:
        return None
    if as_utc(now) < valid_until(pass_, policy):
        return None
    return PassTransition(
        pass_id=pass_.id,
        from_statuses=SCANNABLE_STATUSES,
        to_status=VisitorPassStatus.EXPIRED,
        stamps={"expired_at": as_utc(now)},
    )


def expire_due(
    passes: Iterable[VisitorPass], now: datetime, policy: PassPolicy
) -> list[PassTransition]:
    transitions = (expire(pass_, now, policy) for pass_ in passes)
    return [transition for transition in transitions if transition is not None]


def cancel(pass_: VisitorPass, now: datetime) -> PassTransition | PassTransitionError:
    """Cancel a pass that has not reached a terminal state."""
    if pass_.status in TERMINAL_STATUSES:
        return PassTransitionError(
            code=ALREADY_TERMINAL,
            message=f"Visitor pass is already {pass_.status.value}",
            status=pass_.status,
        )
    return PassTransition(
        pass_id=pass_.id,
        from_statuses=SCANNABLE_STATUSES,
        to_status=VisitorPassStatus.CANCELLED,
        stamps={"cancelled_at": as_utc(now)},
    )


def terminal_check_in_error(pass_: VisitorPass) -> CheckInError | None:
    """Map a terminal pass status to the guard-facing refusal."""
    if pass_.status is VisitorPassStatus.CANCELLED:
        return CheckInError(
            CheckInErrorCode.PASS_CANCELLED, "Visitor pass has been cancelled", pass_.id
        )
    if pass_.status is VisitorPassStatus.EXPIRED:
        return CheckInError(
            CheckInErrorCode.PASS_EXPIRED, "Visitor pass has expired", pass_.id
        )
    if pass_.status is VisitorPassStatus.USED:
        return CheckInError(
            CheckInErrorCode.ALREADY_CHECKED_IN,
            "Visitor pass has already been used",
            pass_.id,
        )
    return None


def check_in(
    lookup: PassLookup,
    scanned_payload: str,
    now: datetime,
    *,
    checked_in_by: uuid.UUID | None = None,
    compound_id: uuid.UUID | None = None,
) -> CheckInResult:
    """Decide whether a scanned QR code admits its visitor.

    When ``compound_id`` is given, passes for units of any other compound are
    refused before their status is considered.
    """
    payload = parse_qr_payload(scanned_payload)
    if payload is None:
        return CheckInError(
            CheckInErrorCode.INVALID_PASS_FORMAT, "QR code is not a valid visitor pass"
        )

    pass_ = lookup(payload.pass_id)
    if pass_ is None:
        return CheckInError(
            CheckInErrorCode.PASS_NOT_FOUND,
            "Visitor pass not found",
            payload.pass_id,
        )

    if compound_id is not None and pass_.unit.compound_id != compound_id:
        return CheckInError(
            CheckInErrorCode.COMPOUND_ACCESS_DENIED,
            "Access denied to this compound",
            pass_.id,
        )

    refusal = terminal_check_in_error(pass_)
    if refusal is not None:
        return refusal

    entry_time = as_utc(now)
    stamps: dict[str, Any] = {"entry_time": entry_time}
    if checked_in_by is not None:
        stamps["checked_in_by_user_id"] = checked_in_by
    unit = pass_.unit
    return CheckInSuccess(
        pass_id=pass_.id,
        resident_user_id=pass_.resident_user_id,
        visitor_name=pass_.visitor_name,
        unit_number=unit.unit_number,
        compound_name=unit.compound.name,
        entry_time=entry_time,
        transition=PassTransition(
            pass_id=pass_.id,
            from_statuses=SCANNABLE_STATUSES,
            to_status=VisitorPassStatus.USED,
            stamps=stamps,
        ),
    )


def apply_transition(pass_: VisitorPass, transition: PassTransition) -> bool:
    """Apply ``transition`` to an in-memory pass; ``False`` if its guard fails."""
    if pass_.id != transition.pass_id or pass_.status not in transition.from_statuses:
        return False
    pass_.status = transition.to_status
    for name, value in transition.stamps.items():
        setattr(pass_, name, value)
    return True
