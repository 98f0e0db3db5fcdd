import uuid
from dataclasses import dataclass
from typing import Optional, Union

from minichat.exceptions import ValidationFailedError


@dataclass(frozen=True)
class UserTarget:
    """A direct conversation with another user."""
    user_id: int


@dataclass(frozen=True)
class GroupTarget:
    """A group conversation."""
    group_id: uuid.UUID


Target = Union[UserTarget, GroupTarget]


def target_from_ids(user_id: Optional[int], group_id: Optional[uuid.UUID]) -> Target:
    if (user_id is None) == (group_id is None):
        raise ValidationFailedError("Exactly one of user_id or group_id must be given.")
    if user_id is not None:
        return UserTarget(user_id)
    return GroupTarget(group_id)


def direct_conversation_key(user_id: int, other_user_id: int) -> str:
    low, high = sorted((user_id, other_user_id))
    return f"direct:{low}:{high}"


def group_conversation_key(group_id: uuid.UUID) -> str:
    return f"group:{group_id}"
