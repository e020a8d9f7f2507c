"""Database models package."""
from models.database import Base, get_session, init_db, close_db, get_pool_status, get_engine
from models.user import User
from models.team import Team
from models.resource import Resource
from models.user_manager import UserManager
from models.team_member import TeamMember, ACCESS_DIRECT, ACCESS_MANAGER
from models.team_resource import TeamResource

__all__ = [
    "Base",
    "get_session",
    "init_db",
    "close_db",
    "get_pool_status",
    "get_engine",
    "User",
    "Team",
    "Resource",
    "UserManager",
    "TeamMember",
    "TeamResource",
    "ACCESS_DIRECT",
    "ACCESS_MANAGER",
]
