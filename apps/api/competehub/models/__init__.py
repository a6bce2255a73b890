"""Expose ORM models."""
from .competition import Competition
from .message import Message
from .room import Room
from .team import Team, TeamMember
from .user import User, UserRole

__all__ = [
    "Competition",
    "Message",
    "Room",
    "Team",
    "TeamMember",
    "User",
    "UserRole",
]
