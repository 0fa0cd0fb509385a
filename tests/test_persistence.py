"""Tests for the SQLAlchemy audit log, directories and account services (aiosqlite).

Run with: pytest tests/test_persistence.py -v
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select, text

from shared.auth.passwords import check_password, hash_password
from shared.core.config import settings
from shared.database.models import Passenger, Stop, User, VerificationLog
from shared.utils.errors import AuditLogUnavailableError
from services.accounts.services.account_service import (
    AccountDisabledError,
    AccountService,
    InvalidCredentialsError,
)
from services.accounts.services.directory import SqlAlchemyPassengerDirectory, SqlAlchemyUserDirectory
from services.admin.services.passenger_service import PassengerService
from services.shuttle.services.stop_service import StopService
from services.tickets.models.ticket import VerificationRecord
from services.tickets.services.audit_log import SqlAlchemyAuditLog

NOON = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def record(at: datetime, passenger_id: str = "P1") -> VerificationRecord:
    return VerificationRecord(passenger_id=passenger_id, driver_id="D1", shuttle_id="default", verified_at=at)


class TestSqlAlchemyAuditLog:

    async def test_append_persists_record(self, db_session, session_maker):
        await SqlAlchemyAuditLog(db_session).append(record(NOON))

        async with session_maker() as other:
            rows = (await other.execute(select(VerificationLog))).scalars().all()
        assert len(rows) == 1
        assert (rows[0].user_id, rows[0].driver_id, rows[0].shuttle_id) == ("P1", "D1", "default")

    async def test_count_since(self, db_session):
        audit_log = SqlAlchemyAuditLog(db_session)
        for offset in (-3, -1, 0, 2):
            await audit_log.append(record(NOON + timedelta(hours=offset)))

        assert await audit_log.count_since(NOON) == 2
        assert await audit_log.count_since(NOON - timedelta(hours=2)) == 3
        assert await audit_log.count_since(NOON + timedelta(hours=5)) == 0

    async def test_count_since_normalizes_timezones(self, db_session):
        audit_log = SqlAlchemyAuditLog(db_session)
        await audit_log.append(record(NOON))
        shanghai = timezone(timedelta(hours=8))

        assert await audit_log.count_since(datetime(2026, 3, 2, 19, 0, tzinfo=shanghai)) == 1
        assert await audit_log.count_since(datetime(2026, 3, 2, 21, 0, tzinfo=shanghai)) == 0

    async def test_append_failure_is_infrastructure_error(self, db_session):
        await db_session.execute(text("DROP TABLE verification_logs"))
        await db_session.commit()

        with pytest.raises(AuditLogUnavailableError) as exc_info:
            await SqlAlchemyAuditLog(db_session).append(record(NOON))

        assert exc_info.value.operation == "append"

    async def test_count_since_failure_is_infrastructure_error(self, db_session):
        await db_session.execute(text("DROP TABLE verification_logs"))
        await db_session.commit()

        with pytest.raises(AuditLogUnavailableError) as exc_info:
            await SqlAlchemyAuditLog(db_session).count_since(NOON)

        assert exc_info.value.operation == "count_since"


class TestSqlAlchemyDirectories:

    async def test_ensure_user_creates_then_reuses(self, db_session):
        users = SqlAlchemyUserDirectory(db_session)

        first = await users.ensure_user("driver_default", "DRIVER")
        second = await users.ensure_user("driver_default", "DRIVER")

        assert first == second
        assert await users.find_id_by_openid("driver_default") == first
        assert await users.find_id_by_openid("driver_other") is None

    async def test_get_profile(self, db_session):
        user = User(openid="passenger_1", role="PASSENGER")
        db_session.add(user)
        await db_session.flush()
        db_session.add(Passenger(user_id=user.id, name="Lin", company="Acme", position="PM", phone="1"))
        await db_session.commit()

        profile = await SqlAlchemyPassengerDirectory(db_session).get_profile(user.id)

        assert (profile.name, profile.company, profile.position) == ("Lin", "Acme", "PM")

    async def test_get_profile_absent(self, db_session):
        assert await SqlAlchemyPassengerDirectory(db_session).get_profile("nobody") is None


class TestAccountService:

    async def test_login_creates_user_with_prefix_role(self, db_session):
        user, created = await AccountService.login(db_session, "driver_wang", "dev-1")

        assert created is True
        assert user.role == "DRIVER"
        assert user.device_id == "dev-1"

    async def test_login_updates_device(self, db_session):
        await AccountService.login(db_session, "passenger_x", "dev-1")

        user, created = await AccountService.login(db_session, "passenger_x", "dev-2")

        assert created is False
        assert user.role == "PASSENGER"
        assert user.device_id == "dev-2"

    async def test_profile_placeholder(self, db_session):
        profile = await AccountService.get_profile(db_session, {"user_id": "u1", "role": "ADMIN"})

        assert profile.position == "ADMIN"
        assert profile.name == "管理员"

    async def test_profile_placeholder_uses_token_phone(self, db_session):
        profile = await AccountService.get_profile(db_session, {"user_id": "u1", "role": "PASSENGER", "phone": "139"})

        assert profile.phone == "139"

    async def test_concurrent_first_login_reuses_user(self, db_session, session_maker, monkeypatch):
        """The INSERT losing a unique-openid race falls back to the row the winner created."""
        async with session_maker() as other:
            existing, _ = await AccountService.login(other, "passenger_race")

        find = AccountService._find_by_openid
        lookups = []

        async def stale_first_lookup(db, openid):
            lookups.append(openid)
            if len(lookups) == 1:
                return None
            return await find(db, openid)

        monkeypatch.setattr(AccountService, "_find_by_openid", staticmethod(stale_first_lookup))

        user, created = await AccountService.login(db_session, "passenger_race")

        assert created is False
        assert user.id == existing.id
        assert len(lookups) == 2


class TestPassengerService:

    async def test_create_and_list(self, db_session):
        created = await PassengerService.create_passenger(db_session, name="Lin", phone="13900000000", company="Acme")

        passengers = await PassengerService.list_passengers(db_session)

        assert created["openid"] == "passenger_13900000000"
        assert [p["name"] for p in passengers] == ["Lin"]
        assert passengers[0]["openid"] == "passenger_13900000000"
        assert passengers[0]["status"] == "ACTIVE"

    async def test_create_reuses_existing_user(self, db_session):
        user_id = await SqlAlchemyUserDirectory(db_session).ensure_user("passenger_139", "PASSENGER")

        created = await PassengerService.create_passenger(db_session, name="Lin", phone="139")

        assert created["user_id"] == user_id

    async def test_create_requires_name_and_phone(self, db_session):
        with pytest.raises(ValueError):
            await PassengerService.create_passenger(db_session, name="", phone="139")

    async def test_create_duplicate_phone_rejected(self, db_session):
        await PassengerService.create_passenger(db_session, name="Lin", phone="139")

        with pytest.raises(ValueError):
            await PassengerService.create_passenger(db_session, name="Lin again", phone="139")

    async def test_create_with_password_enables_phone_login(self, db_session):
        created = await PassengerService.create_passenger(db_session, name="Lin", phone="139", password="secret1")

        user = await AccountService.login_by_phone(db_session, "139", "secret1")

        assert user.id == created["user_id"]
        assert user.role == "PASSENGER"


async def add_user(db_session, openid: str, role: str, phone: str = None, password: str = None, status: int = 1) -> User:
    user = User(
        openid=openid,
        role=role,
        phone=phone,
        password_hash=hash_password(password) if password else None,
        status=status,
    )
    db_session.add(user)
    await db_session.commit()
    return user


class TestPasswords:

    def test_hash_then_check(self):
        hashed = hash_password("secret1")

        assert hashed != "secret1"
        assert check_password("secret1", hashed) is True
        assert check_password("wrong", hashed) is False

    def test_missing_or_malformed_hash(self):
        assert check_password("secret1", None) is False
        assert check_password("secret1", "not-a-bcrypt-hash") is False


class TestPasswordLogin:

    async def test_phone_login_records_last_login(self, db_session):
        await add_user(db_session, "driver_wang", "DRIVER", phone="138", password="pw")

        user = await AccountService.login_by_phone(db_session, "138", "pw")

        assert user.openid == "driver_wang"
        assert user.last_login_at is not None

    async def test_phone_login_wrong_password(self, db_session):
        await add_user(db_session, "driver_wang", "DRIVER", phone="138", password="pw")

        with pytest.raises(InvalidCredentialsError):
            await AccountService.login_by_phone(db_session, "138", "nope")

    async def test_phone_login_unknown_phone(self, db_session):
        with pytest.raises(InvalidCredentialsError):
            await AccountService.login_by_phone(db_session, "000", "pw")

    async def test_phone_login_account_without_password(self, db_session):
        await add_user(db_session, "passenger_138", "PASSENGER", phone="138")

        with pytest.raises(InvalidCredentialsError):
            await AccountService.login_by_phone(db_session, "138", "pw")

    async def test_phone_login_disabled_account(self, db_session):
        await add_user(db_session, "driver_wang", "DRIVER", phone="138", password="pw", status=0)

        with pytest.raises(AccountDisabledError):
            await AccountService.login_by_phone(db_session, "138", "pw")

    async def test_admin_login_by_openid_or_phone(self, db_session):
        admin = await add_user(db_session, "admin_ops", "ADMIN", phone="100", password="pw")

        by_openid = await AccountService.login_admin(db_session, "admin_ops", "pw")
        by_phone = await AccountService.login_admin(db_session, "100", "pw")

        assert by_openid.id == admin.id
        assert by_phone.id == admin.id

    async def test_admin_login_rejects_non_admin(self, db_session):
        await add_user(db_session, "driver_wang", "DRIVER", phone="138", password="pw")

        with pytest.raises(InvalidCredentialsError):
            await AccountService.login_admin(db_session, "driver_wang", "pw")

    async def test_admin_login_disabled(self, db_session):
        await add_user(db_session, "admin_ops", "ADMIN", password="pw", status=0)

        with pytest.raises(AccountDisabledError):
            await AccountService.login_admin(db_session, "admin_ops", "pw")

    async def test_bootstrap_admin_disabled_by_default(self, db_session):
        with pytest.raises(InvalidCredentialsError):
            await AccountService.login_admin(db_session, settings.ADMIN_BOOTSTRAP_USERNAME, "anything")

    async def test_bootstrap_admin_provisioned(self, db_session, monkeypatch):
        monkeypatch.setattr(settings, "ADMIN_BOOTSTRAP_PASSWORD", "boot-pw")

        first = await AccountService.login_admin(db_session, "admin", "boot-pw")
        second = await AccountService.login_admin(db_session, "admin", "boot-pw")

        assert first.openid == "admin_system"
        assert first.role == "ADMIN"
        assert second.id == first.id

    async def test_bootstrap_admin_wrong_password(self, db_session, monkeypatch):
        monkeypatch.setattr(settings, "ADMIN_BOOTSTRAP_PASSWORD", "boot-pw")

        with pytest.raises(InvalidCredentialsError):
            await AccountService.login_admin(db_session, "admin", "nope")


class TestStopService:

    async def test_stops_ordered_by_sequence(self, db_session):
        db_session.add_all([
            Stop(name="Terminal", lat=24.50, lng=118.10, sequence=3),
            Stop(name="Metro", lat=24.48, lng=118.08, sequence=1),
            Stop(name="Plaza", lat=24.49, lng=118.09, sequence=2),
        ])
        await db_session.commit()

        stops = await StopService.list_stops(db_session)

        assert [s.name for s in stops] == ["Metro", "Plaza", "Terminal"]
        assert isinstance(stops[0].id, str)

    async def test_no_stops(self, db_session):
        assert await StopService.list_stops(db_session) == []
