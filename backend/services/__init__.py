"""Services package."""
from services.errors import AccessControlError
from services.locks import TeamLockManager, team_locks

__all__ = ["AccessControlError", "TeamLockManager", "team_locks"]
