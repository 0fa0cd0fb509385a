"""Tests for driver identity resolution.

Run with: pytest tests/test_driver_identity.py -v
"""
from datetime import timedelta

from shared.auth.jwt_handler import create_access_token, create_user_token
from services.tickets.services.driver_identity import (
    BearerCredential,
    DriverIdentityResolver,
    DriverIdentitySource,
    ScanContext,
    build_driver_resolver,
)

DEFAULT = "driver_default"


class TestDriverIdentityResolver:

    async def test_explicit_hint_wins(self, users):
        hinted = users.add("driver_wang", "DRIVER")
        token = create_user_token("someone-else", "DRIVER", "driver_li")
        resolver = build_driver_resolver(users, DEFAULT)

        driver_id = await resolver.resolve(
            ScanContext(driver_openid="driver_wang", authorization=f"Bearer {token}")
        )

        assert driver_id == hinted

    async def test_unknown_hint_falls_back_to_bearer(self, users):
        token = create_user_token("driver-42", "DRIVER", "driver_42")
        resolver = build_driver_resolver(users, DEFAULT)

        driver_id = await resolver.resolve(
            ScanContext(driver_openid="driver_nobody", authorization=f"Bearer {token}")
        )

        assert driver_id == "driver-42"

    async def test_invalid_bearer_falls_back_to_default(self, users):
        resolver = build_driver_resolver(users, DEFAULT)

        driver_id = await resolver.resolve(ScanContext(authorization="Bearer not-a-jwt"))

        assert driver_id == users.users[DEFAULT][0]

    async def test_expired_bearer_is_ignored(self, users):
        token = create_access_token({"sub": "driver-42", "id": "driver-42"}, expires_delta=timedelta(seconds=-5))

        assert await BearerCredential().resolve(ScanContext(authorization=f"Bearer {token}")) is None

    async def test_default_driver_is_provisioned_once(self, users):
        resolver = build_driver_resolver(users, DEFAULT)

        first = await resolver.resolve(ScanContext())
        second = await resolver.resolve(ScanContext())

        assert first == second
        assert users.users[DEFAULT] == (first, "DRIVER")

    async def test_custom_sources_are_consulted_in_order(self):
        class Fixed(DriverIdentitySource):
            def __init__(self, value):
                self.value = value

            async def resolve(self, scan):
                return self.value

        resolver = DriverIdentityResolver([Fixed(None), Fixed("kiosk-1"), Fixed("never")])

        assert await resolver.resolve(ScanContext()) == "kiosk-1"
