"""
User service tests

Coverage:
- Registration with profile, uniqueness, password policy
- Authentication by username or email
- Profile updates
"""
import pytest
from sqlalchemy import select

from esport.errors import ConflictError, ValidationError, NotFoundError, ErrorCode
from esport.orm import ActivityLog, ActivityAction, UserRole
from esport.services.user_service import UserService, password_problems, pwd_context
from esport.tests.conftest import TEST_PASSWORD


class TestPasswordPolicy:

    def test_strong_password(self):
        assert password_problems(TEST_PASSWORD) == []

    @pytest.mark.parametrize("password", ["short1!", "alllowercase1!", "ALLUPPER1!", "NoDigits!!", "NoSpecial123"])
    def test_weak_passwords(self, password):
        assert password_problems(password)


class TestUserService:

    @pytest.mark.asyncio
    async def test_create_user_with_profile(self, db_session):
        service = UserService(db_session)

        user = await service.create_user("Neo", "Neo@Matrix.io", TEST_PASSWORD, profile={"city": "Zion"})

        assert user.email == "neo@matrix.io"
        assert user.role == UserRole.user
        assert user.password_hash != TEST_PASSWORD
        assert pwd_context.verify(TEST_PASSWORD, user.password_hash)
        assert user.to_dict(include_profile=True)["profile"]["city"] == "Zion"

        logs = (await db_session.execute(select(ActivityLog))).scalars().all()
        assert [log.action for log in logs] == [ActivityAction.user_registered]

    @pytest.mark.asyncio
    async def test_duplicate_username_or_email(self, db_session):
        service = UserService(db_session)
        await service.create_user("neo", "neo@matrix.io", TEST_PASSWORD)

        with pytest.raises(ConflictError) as exc_info:
            await service.create_user("neo", "other@matrix.io", TEST_PASSWORD)
        assert exc_info.value.details == {"field": "username"}

        with pytest.raises(ConflictError) as exc_info:
            await service.create_user("trinity", "NEO@matrix.io", TEST_PASSWORD)
        assert exc_info.value.details == {"field": "email"}

    @pytest.mark.asyncio
    async def test_weak_password_is_rejected(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            await UserService(db_session).create_user("neo", "neo@matrix.io", "password")
        assert exc_info.value.code == ErrorCode.WEAK_PASSWORD

    @pytest.mark.asyncio
    async def test_authenticate(self, db_session):
        service = UserService(db_session)
        created = await service.create_user("neo", "neo@matrix.io", TEST_PASSWORD)

        by_name = await service.authenticate("neo", TEST_PASSWORD)
        by_email = await service.authenticate("NEO@matrix.io", TEST_PASSWORD)

        assert by_name.id == by_email.id == created.id
        assert by_name.last_login is not None
        assert await service.authenticate("neo", "Wr0ng!Pass") is None
        assert await service.authenticate("ghost", TEST_PASSWORD) is None

    @pytest.mark.asyncio
    async def test_inactive_user_cannot_log_in(self, db_session):
        service = UserService(db_session)
        user = await service.create_user("neo", "neo@matrix.io", TEST_PASSWORD)
        user.is_active = False
        await db_session.commit()

        assert await service.authenticate("neo", TEST_PASSWORD) is None

    @pytest.mark.asyncio
    async def test_update_profile_and_user(self, db_session):
        service = UserService(db_session)
        user = await service.create_user("neo", "neo@matrix.io", TEST_PASSWORD)

        profile = await service.update_profile(user.id, {"first_name": "Thomas", "last_name": "Anderson"})
        assert profile["first_name"] == "Thomas"

        updated = await service.update_user(user.id, {"username": "the_one", "profile": {"country": "Zion"}})
        assert updated.username == "the_one"
        assert updated.profile.first_name == "Thomas"
        assert updated.profile.country == "Zion"

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_profile_field(self, db_session):
        service = UserService(db_session)
        user = await service.create_user("neo", "neo@matrix.io", TEST_PASSWORD)

        with pytest.raises(ValidationError):
            await service.update_profile(user.id, {"shoe_size": 44})

    @pytest.mark.asyncio
    async def test_update_to_taken_email(self, db_session):
        service = UserService(db_session)
        await service.create_user("neo", "neo@matrix.io", TEST_PASSWORD)
        trinity = await service.create_user("trinity", "trinity@matrix.io", TEST_PASSWORD)

        with pytest.raises(ConflictError):
            await service.update_user(trinity.id, {"email": "neo@matrix.io"})

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            await UserService(db_session).get_user(999)
