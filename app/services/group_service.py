# app/services/group_service.py

from typing import List, Optional
from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from models.group import Group, GroupMember
from models.user import User
from exceptions.domain_exceptions import (
    NotFoundException,
    BadRequestException,
    ForbiddenException,
)
import logging

logger = logging.getLogger(__name__)


class GroupService:
    """
    Service for group membership.

    Membership is stored once, in `group_members`; a group's member list and a
    user's joined groups are both read from it, so they cannot disagree.
    """

    @staticmethod
    async def get_group(session: AsyncSession, group_id: int) -> Group:
        """
        Get a group with its members (in join order) loaded

        Raises:
            NotFoundException: If the group does not exist
        """
        query = (
            select(Group)
            .where(Group.id == group_id)
            .options(selectinload(Group.members), selectinload(Group.created_by))
            .execution_options(populate_existing=True)
        )
        result = await session.execute(query)
        group = result.scalar_one_or_none()
        if not group:
            raise NotFoundException(
                message="Group not found",
                details={"group_id": group_id}
            )
        return group

    @staticmethod
    async def is_member(session: AsyncSession, group_id: int, user_id: int) -> bool:
        query = select(func.count()).select_from(GroupMember).where(
            GroupMember.group_id == group_id,
            GroupMember.user_id == user_id
        )
        result = await session.execute(query)
        return result.scalar() > 0

    @staticmethod
    async def get_member_ids(session: AsyncSession, group_id: int) -> List[int]:
        """Member ids in join order"""
        query = (
            select(GroupMember.user_id)
            .where(GroupMember.group_id == group_id)
            .order_by(GroupMember.id_membership)
        )
        result = await session.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_user_group_ids(session: AsyncSession, user_id: int) -> List[int]:
        """Ids of every group the user currently belongs to"""
        query = (
            select(GroupMember.group_id)
            .where(GroupMember.user_id == user_id)
            .order_by(GroupMember.id_membership)
        )
        result = await session.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def _ensure_users_exist(session: AsyncSession, user_ids: List[int]) -> None:
        if not user_ids:
            return
        result = await session.execute(select(User.id).where(User.id.in_(user_ids)))
        found = set(result.scalars().all())
        missing = [uid for uid in user_ids if uid not in found]
        if missing:
            raise NotFoundException(
                message="One or more users not found",
                details={"user_ids": missing}
            )

    @staticmethod
    async def create_group(
        session: AsyncSession,
        creator_id: int,
        name: str,
        description: str = "",
        member_ids: Optional[List[int]] = None,
        image_url: Optional[str] = None
    ) -> Group:
        """
        Create a group; the creator becomes its first member

        Args:
            session: Database session
            creator_id: ID of the creating user
            name: Group name
            description: Optional description
            member_ids: Other members, joined in the given order (duplicates ignored)
            image_url: Optional group image reference

        Returns:
            The created group with members loaded

        Raises:
            BadRequestException: If the name is empty
            NotFoundException: If the creator or a member does not exist
        """
        name = (name or "").strip()
        if not name:
            raise BadRequestException(message="Group name is required")

        ordered_ids: List[int] = []
        for uid in [creator_id, *(member_ids or [])]:
            if uid not in ordered_ids:
                ordered_ids.append(uid)

        await GroupService._ensure_users_exist(session, ordered_ids)

        group = Group(
            name=name,
            description=description or "",
            created_by_id=creator_id,
            image_url=image_url
        )
        session.add(group)
        await session.flush()

        for uid in ordered_ids:
            session.add(GroupMember(group_id=group.id, user_id=uid))
            # Flush per row so autoincrement ids follow join order
            await session.flush()

        await session.commit()
        logger.info(f"Group {group.id} created by user {creator_id} with {len(ordered_ids)} members")
        return await GroupService.get_group(session, group.id)

    @staticmethod
    async def add_members(
        session: AsyncSession,
        group_id: int,
        requester_id: int,
        member_ids: List[int]
    ) -> Group:
        """
        Add members to a group (creator only); existing members are skipped

        Raises:
            NotFoundException: If the group or a user does not exist
            ForbiddenException: If the requester is not the group creator
        """
        group = await GroupService.get_group(session, group_id)
        if group.created_by_id != requester_id:
            raise ForbiddenException(
                message="Only group creator can add members",
                details={"group_id": group_id}
            )

        current = set(await GroupService.get_member_ids(session, group_id))
        new_ids: List[int] = []
        for uid in member_ids:
            if uid not in current and uid not in new_ids:
                new_ids.append(uid)

        await GroupService._ensure_users_exist(session, new_ids)

        for uid in new_ids:
            session.add(GroupMember(group_id=group_id, user_id=uid))
            await session.flush()

        await session.commit()
        return await GroupService.get_group(session, group_id)

    @staticmethod
    async def leave_group(session: AsyncSession, group_id: int, user_id: int) -> None:
        """
        Remove a user from a group

        Raises:
            NotFoundException: If the group does not exist
            BadRequestException: If the user is not a member
        """
        await GroupService.get_group(session, group_id)

        result = await session.execute(
            delete(GroupMember).where(
                GroupMember.group_id == group_id,
                GroupMember.user_id == user_id
            )
        )
        if result.rowcount == 0:
            await session.rollback()
            raise BadRequestException(
                message="You are not a member of this group",
                details={"group_id": group_id}
            )

        await session.commit()
        logger.info(f"User {user_id} left group {group_id}")
