"""Visitor pass issuance and gate check-in API."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.config import get_settings
from app.models.visitor_pass import VisitorPass, VisitorPassStatus
from app.schemas.visitor_pass import (
    CheckInRead,
    CheckInRequest,
    ExpireSweepRead,
    PassErrorRead,
    VisitorPassCreate,
    VisitorPassRead,
)
from app.security.permissions import (
    GATE_ROLES,
    STAFF_ROLES,
    Actor,
    ActorRole,
    compound_scope,
    require_compound_access,
    require_roles,
)
from app.services import notification_service, visitor_pass_service
from app.services.visitor_pass_lifecycle import (
    CheckInError,
    CheckInErrorCode,
    InvalidVisitorPassRequest,
    PassTransitionError,
    VisitorPassData,
)

router = APIRouter()

settings = get_settings()

_CHECK_IN_ERROR_STATUS = {
    CheckInErrorCode.INVALID_PASS_FORMAT: status.HTTP_400_BAD_REQUEST,
    CheckInErrorCode.PASS_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    CheckInErrorCode.PASS_CANCELLED: status.HTTP_409_CONFLICT,
    CheckInErrorCode.PASS_EXPIRED: status.HTTP_409_CONFLICT,
    CheckInErrorCode.ALREADY_CHECKED_IN: status.HTTP_409_CONFLICT,
    CheckInErrorCode.COMPOUND_ACCESS_DENIED: status.HTTP_403_FORBIDDEN,
}


def _ensure_can_view(actor: Actor, pass_: VisitorPass, *, staff: set[ActorRole]) -> None:
    """Staff act inside their compound; residents only on passes they issued."""
    if actor.role in staff:
        require_compound_access(actor, pass_.unit.compound_id)
    elif pass_.resident_user_id != actor.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
        )


@router.post(
    "",
    response_model=VisitorPassRead,
    status_code=status.HTTP_201_CREATED,
    summary="Issue a visitor pass",
)
async def create_visitor_pass(
    payload: VisitorPassCreate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_actor: Annotated[Actor, Depends(deps.get_current_actor)],
    background_tasks: BackgroundTasks,
) -> VisitorPassRead:
    require_roles(current_actor, {ActorRole.RESIDENT, *STAFF_ROLES})
    unit_id = payload.unit_id or current_actor.unit_id
    if unit_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="unit_id is required"
        )
    if current_actor.role is ActorRole.RESIDENT and unit_id != current_actor.unit_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Residents can only issue passes for their own unit",
        )
    if current_actor.role in STAFF_ROLES:
        unit = await visitor_pass_service.get_unit(session, unit_id=unit_id)
        if unit is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Community unit not found"
            )
        require_compound_access(current_actor, unit.compound_id)
    data = VisitorPassData(
        resident_user_id=current_actor.user_id,
        visitor_name=payload.visitor_name,
        visitor_phone=payload.visitor_phone,
        expected_arrival=payload.expected_arrival,
        expected_departure=payload.expected_departure,
        visit_purpose=payload.visit_purpose,
        visitor_id_number=payload.visitor_id_number,
        notes=payload.notes,
    )
    try:
        pass_ = await visitor_pass_service.create_visitor_pass(
            session, unit_id=unit_id, data=data
        )
    except visitor_pass_service.UnitNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except InvalidVisitorPassRequest as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc
    notification_service.notify_pass_issued(pass_, background_tasks)
    return VisitorPassRead.model_validate(pass_)


@router.get("", response_model=list[VisitorPassRead], summary="List visitor passes")
async def list_visitor_passes(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_actor: Annotated[Actor, Depends(deps.get_current_actor)],
    status_filter: Annotated[VisitorPassStatus | None, Query(alias="status")] = None,
    arrival_date: Annotated[date | None, Query(alias="date")] = None,
    visitor_name: Annotated[str | None, Query(max_length=255)] = None,
    compound_id: uuid.UUID | None = None,
    skip: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1)] = 50,
) -> list[VisitorPassRead]:
    """Residents see passes they issued; gate staff see their compound's passes."""
    resident_user_id: uuid.UUID | None = None
    if current_actor.role is ActorRole.RESIDENT:
        resident_user_id = current_actor.user_id
    else:
        scope = compound_scope(current_actor)
        if scope is not None:
            if compound_id is not None and compound_id != scope:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Access denied to this compound",
                )
            compound_id = scope
    passes = await visitor_pass_service.list_visitor_passes(
        session,
        resident_user_id=resident_user_id,
        compound_id=compound_id,
        status=status_filter,
        arrival_date=arrival_date,
        visitor_name=visitor_name,
        skip=skip,
        limit=min(limit, 100),
    )
    return [VisitorPassRead.model_validate(pass_) for pass_ in passes]


@router.post(
    "/check-in",
    response_model=CheckInRead,
    summary="Validate a scanned pass at the gate",
    dependencies=[deps.rate_limit(settings.rate_limit_check_in)],
    responses={
        400: {"model": PassErrorRead},
        403: {"model": PassErrorRead},
        404: {"model": PassErrorRead},
        409: {"model": PassErrorRead},
    },
)
async def check_in(
    payload: CheckInRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_actor: Annotated[Actor, Depends(deps.get_current_actor)],
    background_tasks: BackgroundTasks,
) -> CheckInRead:
    require_roles(current_actor, GATE_ROLES)
    outcome = await visitor_pass_service.check_in_visitor(
        session,
        scanned_payload=payload.payload,
        guard_id=current_actor.user_id,
        compound_id=compound_scope(current_actor),
    )
    if isinstance(outcome, CheckInError):
        raise HTTPException(
            status_code=_CHECK_IN_ERROR_STATUS[outcome.code],
            detail=PassErrorRead(
                code=outcome.code.value, message=outcome.message, pass_id=outcome.pass_id
            ).model_dump(mode="json"),
        )
    notification_service.notify_visitor_checked_in(outcome, background_tasks)
    return CheckInRead.from_outcome(outcome)


@router.post(
    "/expire-sweep",
    response_model=ExpireSweepRead,
    summary="Expire passes past their validity window",
)
async def expire_sweep(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_actor: Annotated[Actor, Depends(deps.get_current_actor)],
    background_tasks: BackgroundTasks,
) -> ExpireSweepRead:
    require_roles(current_actor, STAFF_ROLES)
    expired = await visitor_pass_service.expire_overdue_passes(session)
    for pass_ in expired:
        notification_service.notify_pass_closed(pass_, background_tasks)
    return ExpireSweepRead(
        expired=len(expired), pass_ids=[pass_.id for pass_ in expired]
    )


@router.get("/{pass_id}", response_model=VisitorPassRead, summary="Get visitor pass")
async def get_visitor_pass(
    pass_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_actor: Annotated[Actor, Depends(deps.get_current_actor)],
) -> VisitorPassRead:
    pass_ = await visitor_pass_service.get_visitor_pass(session, pass_id=pass_id)
    if pass_ is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Visitor pass not found"
        )
    _ensure_can_view(current_actor, pass_, staff=GATE_ROLES)
    return VisitorPassRead.model_validate(pass_)


@router.post(
    "/{pass_id}/cancel",
    response_model=VisitorPassRead,
    summary="Cancel a visitor pass",
    responses={409: {"model": PassErrorRead}},
)
async def cancel_visitor_pass(
    pass_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_actor: Annotated[Actor, Depends(deps.get_current_actor)],
    background_tasks: BackgroundTasks,
) -> VisitorPassRead:
    existing = await visitor_pass_service.get_visitor_pass(session, pass_id=pass_id)
    if existing is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Visitor pass not found"
        )
    _ensure_can_view(current_actor, existing, staff=STAFF_ROLES)
    outcome = await visitor_pass_service.cancel_visitor_pass(session, pass_id=pass_id)
    if isinstance(outcome, PassTransitionError):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=PassErrorRead(
                code=outcome.code, message=outcome.message, pass_id=pass_id
            ).model_dump(mode="json"),
        )
    notification_service.notify_pass_closed(outcome, background_tasks)
    return VisitorPassRead.model_validate(outcome)
