from lockout.schemas.lockout import (
    LockoutRecordResponse,
    LockRequest,
    LockStatusResponse,
    UnlockRequest,
)

__all__ = [
    "LockoutRecordResponse",
    "LockRequest",
    "LockStatusResponse",
    "UnlockRequest",
]
