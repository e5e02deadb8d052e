"""Lockout administration API (admin token required)."""

from typing import Annotated

from fastapi import APIRouter, Depends

from lockout.api.deps import get_lockout_service, require_admin
from lockout.core.errors import not_found
from lockout.schemas.lockout import (
    LockoutRecordResponse,
    LockRequest,
    LockStatusResponse,
    UnlockRequest,
)
from lockout.services.lockout import LockoutService, LockStatus

router = APIRouter(prefix="/lockouts", tags=["lockouts"], dependencies=[Depends(require_admin)])


@router.get("/{identifier}", response_model=LockStatusResponse)
async def get_lock_status(
    identifier: str,
    service: Annotated[LockoutService, Depends(get_lockout_service)],
):
    """Get lock status for an identifier."""
    # Read the store directly: admin views must not fail open
    record = await service.store.get(identifier)
    return LockStatusResponse.from_status(LockStatus.from_record(record, identifier, service.clock()))


@router.post("/{identifier}/lock", response_model=LockoutRecordResponse)
async def lock_identifier(
    identifier: str,
    service: Annotated[LockoutService, Depends(get_lockout_service)],
    data: LockRequest | None = None,
):
    """Lock an identifier immediately."""
    data = data or LockRequest()
    record = await service.lock(
        identifier,
        user_id=data.user_id,
        reason=data.reason,
        metadata=data.metadata,
    )
    return LockoutRecordResponse.from_record(record, service.clock())


@router.post("/{identifier}/unlock", response_model=LockoutRecordResponse)
async def unlock_identifier(
    identifier: str,
    service: Annotated[LockoutService, Depends(get_lockout_service)],
    data: UnlockRequest | None = None,
):
    """Unlock an identifier, resetting its attempts unless told otherwise."""
    data = data or UnlockRequest()
    record = await service.unlock(identifier, reset_attempts=data.reset_attempts)
    if record is None:
        raise not_found("Lockout record", {"identifier": identifier})
    return LockoutRecordResponse.from_record(record, service.clock())


@router.delete("/{identifier}/attempts", response_model=LockoutRecordResponse)
async def reset_identifier_attempts(
    identifier: str,
    service: Annotated[LockoutService, Depends(get_lockout_service)],
):
    """Clear the failed attempt counter and any lock."""
    record = await service.reset_attempts(identifier)
    if record is None:
        raise not_found("Lockout record", {"identifier": identifier})
    return LockoutRecordResponse.from_record(record, service.clock())
