import uuid
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from settleup.core.errors import Unauthorized
from settleup.models.group import GroupMember, GroupRole


async def member_ids(db: AsyncSession, group_id: uuid.UUID, user_ids: Iterable[uuid.UUID]) -> set[uuid.UUID]:
    """Subset of user_ids that belong to the group."""
    result = await db.execute(
        select(GroupMember.user_id).where(
            GroupMember.group_id == group_id,
            GroupMember.user_id.in_(list(user_ids)),
        )
    )
    return set(result.scalars().all())


async def get_member_role(db: AsyncSession, group_id: uuid.UUID, user_id: uuid.UUID) -> GroupRole | None:
    result = await db.execute(
        select(GroupMember.role).where(
            GroupMember.group_id == group_id,
            GroupMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def is_owner(db: AsyncSession, group_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    return await get_member_role(db, group_id, user_id) == GroupRole.owner


async def ensure_member(db: AsyncSession, group_id: uuid.UUID, user_id: uuid.UUID) -> None:
    if await get_member_role(db, group_id, user_id) is None:
        raise Unauthorized("Not a member of this group")
