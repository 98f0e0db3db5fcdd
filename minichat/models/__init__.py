from .base import Base
from .user import User
from .group import Group
from .group_member import GroupMember
from .message import Message
from .request_log import RequestLog

__all__ = [
    "Base",
    "User",
    "Group",
    "GroupMember",
    "Message",
    "RequestLog"
]
