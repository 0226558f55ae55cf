"""
Unit tests for GroupService
"""
import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from models.user import User
from models.group import Group
from services.group_service import GroupService
from exceptions.domain_exceptions import NotFoundException, BadRequestException, ForbiddenException


@pytest.mark.unit
class TestGroupMembership:
    """Test cases for membership queries and changes"""

    async def test_create_group_creator_first(self, db_session: AsyncSession, alice: User, bob: User, carol: User):
        group = await GroupService.create_group(
            db_session,
            creator_id=carol.id,
            name="  Weekend  ",
            member_ids=[alice.id, carol.id, bob.id, alice.id]
        )

        assert group.name == "Weekend"
        assert [m.id for m in group.members] == [carol.id, alice.id, bob.id]

    async def test_create_group_requires_name(self, db_session: AsyncSession, alice: User):
        with pytest.raises(BadRequestException):
            await GroupService.create_group(db_session, creator_id=alice.id, name="   ")

    async def test_create_group_unknown_member(self, db_session: AsyncSession, alice: User):
        with pytest.raises(NotFoundException):
            await GroupService.create_group(db_session, creator_id=alice.id, name="Ghosts", member_ids=[9999])

    async def test_membership_seen_from_both_sides(self, db_session: AsyncSession, bob: User, group: Group):
        assert await GroupService.is_member(db_session, group.id, bob.id)
        assert group.id in await GroupService.get_user_group_ids(db_session, bob.id)

    async def test_add_members_creator_only(self, db_session: AsyncSession, bob: User, outsider: User, group: Group):
        with pytest.raises(ForbiddenException):
            await GroupService.add_members(db_session, group.id, bob.id, [outsider.id])

    async def test_add_members_skips_existing(
        self,
        db_session: AsyncSession,
        alice: User,
        bob: User,
        outsider: User,
        group: Group
    ):
        updated = await GroupService.add_members(db_session, group.id, alice.id, [bob.id, outsider.id])

        assert [m.id for m in updated.members][-1] == outsider.id
        assert len(updated.members) == 4

    async def test_leave_group(self, db_session: AsyncSession, carol: User, group: Group):
        await GroupService.leave_group(db_session, group.id, carol.id)

        assert not await GroupService.is_member(db_session, group.id, carol.id)
        assert group.id not in await GroupService.get_user_group_ids(db_session, carol.id)

    async def test_leave_group_not_member(self, db_session: AsyncSession, outsider: User, group: Group):
        with pytest.raises(BadRequestException):
            await GroupService.leave_group(db_session, group.id, outsider.id)

    async def test_get_unknown_group(self, db_session: AsyncSession):
        with pytest.raises(NotFoundException):
            await GroupService.get_group(db_session, 9999)
