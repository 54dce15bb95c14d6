"""Visitor pass persistence and gate check-in."""
from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from datetime import UTC, date, datetime, time, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import get_settings
from app.models.compound import CommunityUnit, Compound, SecurityLevel
from app.models.visitor_pass import VisitorPass, VisitorPassStatus
from app.security.redact import mask_name
from app.services.visitor_pass_lifecycle import (
    ALREADY_TERMINAL,
    SCANNABLE_STATUSES,
    CheckInError,
    CheckInErrorCode,
    CheckInResult,
    CheckInSuccess,
    PassPolicy,
    PassTransition,
    PassTransitionError,
    VisitorPassData,
    activate,
    cancel,
    check_in,
    create_pass,
    expire_due,
    parse_qr_payload,
    terminal_check_in_error,
)

logger = logging.getLogger(__name__)


class UnitNotFound(LookupError):
    """Raised when a community unit id does not resolve."""


class VisitorPassNotFound(LookupError):
    """Raised when a pass id does not resolve."""


def pass_policy_for(compound: Compound | None) -> PassPolicy:
    """Build the pass timing policy; premium compounds hold passes until the window opens."""
    settings = get_settings()
    return PassPolicy(
        grace_period=timedelta(minutes=settings.visitor_pass_grace_minutes),
        default_validity=timedelta(minutes=settings.visitor_pass_validity_minutes),
        activate_immediately=(
            compound is not None and compound.security_level is not SecurityLevel.PREMIUM
        ),
    )


async def get_unit(session: AsyncSession, *, unit_id: uuid.UUID) -> CommunityUnit | None:
    result = await session.execute(
        select(CommunityUnit)
        .options(selectinload(CommunityUnit.compound))
        .where(CommunityUnit.id == unit_id)
    )
    return result.scalar_one_or_none()


async def get_visitor_pass(
    session: AsyncSession, *, pass_id: uuid.UUID
) -> VisitorPass | None:
    result = await session.execute(
        select(VisitorPass)
        .options(selectinload(VisitorPass.unit).selectinload(CommunityUnit.compound))
        .where(VisitorPass.id == pass_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _require_visitor_pass(
    session: AsyncSession, *, pass_id: uuid.UUID
) -> VisitorPass:
    pass_ = await get_visitor_pass(session, pass_id=pass_id)
    if pass_ is None:
        raise VisitorPassNotFound("Visitor pass not found")
    return pass_


async def list_visitor_passes(
    session: AsyncSession,
    *,
    resident_user_id: uuid.UUID | None = None,
    compound_id: uuid.UUID | None = None,
    status: VisitorPassStatus | None = None,
    arrival_date: date | None = None,
    visitor_name: str | None = None,
    skip: int = 0,
    limit: int = 50,
) -> Sequence[VisitorPass]:
    """Return passes ordered by expected arrival, narrowed by the given filters."""
    stmt = select(VisitorPass).options(
        selectinload(VisitorPass.unit).selectinload(CommunityUnit.compound)
    )
    if resident_user_id is not None:
        stmt = stmt.where(VisitorPass.resident_user_id == resident_user_id)
    if compound_id is not None:
        stmt = stmt.join(VisitorPass.unit).where(CommunityUnit.compound_id == compound_id)
    if status is not None:
        stmt = stmt.where(VisitorPass.status == status)
    if arrival_date is not None:
        day_start = datetime.combine(arrival_date, time.min, tzinfo=UTC)
        stmt = stmt.where(
            VisitorPass.expected_arrival >= day_start,
            VisitorPass.expected_arrival < day_start + timedelta(days=1),
        )
    if visitor_name:
        stmt = stmt.where(VisitorPass.visitor_name.ilike(f"%{visitor_name}%"))
    stmt = stmt.order_by(VisitorPass.expected_arrival, VisitorPass.id).offset(skip).limit(limit)
    result = await session.execute(stmt)
    return result.scalars().all()
    return result.scalar_one_or_none()


async def _apply_transition(session: AsyncSession, transition: PassTransition) -> bool:
    """Compare-and-set the pass status; ``False`` when another writer got there first."""
    result = await session.execute(
        update(VisitorPass)
        .where(
            VisitorPass.id == transition.pass_id,
            VisitorPass.status.in_(transition.from_statuses),
        )
        .values(status=transition.to_status, **transition.stamps)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def create_visitor_pass(
    session: AsyncSession,
    *,
    unit_id: uuid.UUID,
    data: VisitorPassData,
    now: datetime | None = None,
) -> VisitorPass:
    """Issue a pass for ``unit_id`` and activate it when policy allows."""
    unit = await get_unit(session, unit_id=unit_id)
    if unit is None:
        raise UnitNotFound("Community unit not found")
    moment = now or datetime.now(UTC)
    pass_ = create_pass(data, unit, now=moment)
    session.add(pass_)
    await session.flush()

    transition = activate(pass_, moment, pass_policy_for(unit.compound))
    if transition is not None:
        await _apply_transition(session, transition)
    await session.commit()
    logger.info("Visitor pass %s issued for unit %s", pass_.id, unit.unit_number)

    return await _require_visitor_pass(session, pass_id=pass_.id)


async def evaluate_check_in(
    session: AsyncSession,
    *,
    scanned_payload: str,
    now: datetime,
    guard_id: uuid.UUID | None = None,
    compound_id: uuid.UUID | None = None,
) -> CheckInResult:
    """Resolve the scanned pass and decide the scan without writing anything."""
    payload = parse_qr_payload(scanned_payload)
    records: dict[uuid.UUID, VisitorPass] = {}
    if payload is not None:
        record = await get_visitor_pass(session, pass_id=payload.pass_id)
        if record is not None:
            records[record.id] = record
    return check_in(
        records.get,
        scanned_payload,
        now,
        checked_in_by=guard_id,
        compound_id=compound_id,
    )


async def commit_check_in(
    session: AsyncSession, outcome: CheckInSuccess
) -> CheckInResult:
    """Persist an accepted scan; a concurrent scan or sweep that won turns into its error."""
    if await _apply_transition(session, outcome.transition):
        await session.commit()
        logger.info(
            "Visitor %s checked in on pass %s",
            mask_name(outcome.visitor_name),
            outcome.pass_id,
        )
        return outcome

    await session.rollback()
    current = await get_visitor_pass(session, pass_id=outcome.pass_id)
    if current is None:
        return CheckInError(
            CheckInErrorCode.PASS_NOT_FOUND, "Visitor pass not found", outcome.pass_id
        )
    logger.warning(
        "Check-in for pass %s lost to a concurrent %s transition",
        outcome.pass_id,
        current.status.value,
    )
    refusal = terminal_check_in_error(current)
    if refusal is None:
        refusal = CheckInError(
            CheckInErrorCode.ALREADY_CHECKED_IN,
            "Visitor pass has already been used",
            outcome.pass_id,
        )
    return refusal


async def check_in_visitor(
    session: AsyncSession,
    *,
    scanned_payload: str,
    now: datetime | None = None,
    guard_id: uuid.UUID | None = None,
    compound_id: uuid.UUID | None = None,
) -> CheckInResult:
    """Validate a gate scan and atomically mark the pass used.

    ``compound_id`` restricts the scan to passes for units of that compound.
    """
    outcome = await evaluate_check_in(
        session,
        scanned_payload=scanned_payload,
        now=now or datetime.now(UTC),
        guard_id=guard_id,
        compound_id=compound_id,
    )
    if isinstance(outcome, CheckInError):
        logger.info("Check-in refused: %s", outcome.code.value)
        return outcome
    return await commit_check_in(session, outcome)


async def cancel_visitor_pass(
    session: AsyncSession,
    *,
    pass_id: uuid.UUID,
    now: datetime | None = None,
) -> VisitorPass | PassTransitionError:
    pass_ = await get_visitor_pass(session, pass_id=pass_id)
    if pass_ is None:
        raise VisitorPassNotFound("Visitor pass not found")
    decision = cancel(pass_, now or datetime.now(UTC))
    if isinstance(decision, PassTransitionError):
        return decision
    if not await _apply_transition(session, decision):
        await session.rollback()
        current = await _require_visitor_pass(session, pass_id=pass_id)
        return PassTransitionError(
            code=ALREADY_TERMINAL,
            message=f"Visitor pass is already {current.status.value}",
            status=current.status,
        )
    await session.commit()
    logger.info("Visitor pass %s cancelled", pass_id)
    return await _require_visitor_pass(session, pass_id=pass_id)


async def _open_passes(session: AsyncSession) -> list[VisitorPass]:
    result = await session.execute(
        select(VisitorPass)
        .options(selectinload(VisitorPass.unit).selectinload(CommunityUnit.compound))
        .where(VisitorPass.status.in_(SCANNABLE_STATUSES))
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def expire_overdue_passes(
    session: AsyncSession, *, now: datetime | None = None
) -> list[VisitorPass]:
    """Sweep unused passes past their validity window into ``expired``."""
    moment = now or datetime.now(UTC)
    expired_ids: list[uuid.UUID] = []
    open_passes = await _open_passes(session)
    for transition in expire_due(open_passes, moment, pass_policy_for(None)):
        if await _apply_transition(session, transition):
            expired_ids.append(transition.pass_id)
    await session.commit()
    if expired_ids:
        logger.info("Expired %d visitor pass(es)", len(expired_ids))
    expired: list[VisitorPass] = []
    for pass_id in expired_ids:
        stored = await get_visitor_pass(session, pass_id=pass_id)
        if stored is not None:
            expired.append(stored)
    return expired


async def activate_due_passes(
    session: AsyncSession, *, now: datetime | None = None
) -> int:
    """Sweep pending passes whose arrival window has opened into ``active``."""
    moment = now or datetime.now(UTC)
    activated = 0
    for pass_ in await _open_passes(session):
        transition = activate(pass_, moment, pass_policy_for(pass_.unit.compound))
        if transition is not None and await _apply_transition(session, transition):
            activated += 1
    await session.commit()
    return activated
