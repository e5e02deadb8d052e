from lockout.models.lockout import Lockout

__all__ = [
    "Lockout",
]
