"""Id parsing and read-only user lookups shared by the services."""
from __future__ import annotations

from typing import Iterable

from beanie import PydanticObjectId
from beanie.operators import In
from bson.errors import InvalidId

from app.models.user import User


def safe_object_id(value: str | None) -> PydanticObjectId | None:
    if not value:
        return None
    try:
        return PydanticObjectId(value)
    except (InvalidId, TypeError):
        return None


async def users_by_id(user_ids: Iterable[str]) -> dict[str, User]:
    """Map str(id) -> User for the ids that parse and exist; unknown ids are absent."""
    object_ids: list[PydanticObjectId] = []
    seen: set[str] = set()
    for raw in user_ids:
        oid = safe_object_id(raw)
        if oid and str(oid) not in seen:
            seen.add(str(oid))
            object_ids.append(oid)
    if not object_ids:
        return {}
    users = await User.find(In(User.id, object_ids)).to_list()
    return {str(u.id): u for u in users}
