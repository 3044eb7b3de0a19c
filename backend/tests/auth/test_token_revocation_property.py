"""Property-based tests for access tokens and revocation.

**Feature: livecast, Property 9: Token Revocation**
"""

import time
import uuid
from datetime import timedelta
from typing import Optional

import pytest
from fastapi import HTTPException
from hypothesis import given, settings, strategies as st

from livecast.core.redis import ExpiringKeyStore
from livecast.modules.auth.jwt import (
    AdminAccessDenied,
    CreatorAccessDenied,
    create_access_token,
    decode_token,
    require_admin,
    require_creator,
    revoke_token,
    validate_token,
)
from livecast.modules.auth.models import UserRole


class InMemoryRedis:
    """The subset of the async redis client ExpiringKeyStore calls."""

    def __init__(self):
        self.values: dict[str, tuple[str, float]] = {}

    def _live(self, key: str) -> Optional[str]:
        entry = self.values.get(key)
        if entry is None or entry[1] <= time.monotonic():
            self.values.pop(key, None)
            return None
        return entry[0]

    async def set(self, key: str, value: str, ex: int) -> None:
        self.values[key] = (value, time.monotonic() + ex)

    async def get(self, key: str) -> Optional[str]:
        return self._live(key)

    async def exists(self, key: str) -> int:
        return 1 if self._live(key) is not None else 0

    async def delete(self, key: str) -> None:
        self.values.pop(key, None)


@pytest.fixture
def revoked() -> ExpiringKeyStore:
    return ExpiringKeyStore(InMemoryRedis(), "auth:revoked")


class TestTokens:
    @pytest.mark.asyncio
    async def test_valid_token_round_trips_subject(self, revoked) -> None:
        user_id = uuid.uuid4()
        token, jti = create_access_token(user_id)

        payload = await validate_token(token, revoked)

        assert payload.sub == str(user_id)
        assert payload.jti == jti
        assert payload.type == "access"

    @pytest.mark.asyncio
    async def test_revoked_token_is_rejected(self, revoked) -> None:
        token, jti = create_access_token(uuid.uuid4())

        assert await revoke_token(token, revoked) is True

        assert await validate_token(token, revoked) is None
        assert await revoked.contains(jti)

    @pytest.mark.asyncio
    async def test_expired_token_is_rejected(self, revoked) -> None:
        token, _ = create_access_token(uuid.uuid4(), expires_delta=timedelta(seconds=-1))

        assert decode_token(token) is None
        assert await validate_token(token, revoked) is None
        assert await revoke_token(token, revoked) is False

    @pytest.mark.asyncio
    async def test_wrong_type_is_rejected(self, revoked) -> None:
        token, _ = create_access_token(uuid.uuid4())

        assert await validate_token(token, revoked, expected_type="refresh") is None

    def test_garbage_is_not_a_token(self) -> None:
        assert decode_token("not-a-jwt") is None

    @pytest.mark.asyncio
    async def test_store_rejects_non_positive_ttl(self, revoked) -> None:
        with pytest.raises(ValueError):
            await revoked.put("k", "v", 0)

    @given(count=st.integers(min_value=1, max_value=8), revoke_index=st.integers(min_value=0, max_value=7))
    @settings(max_examples=30, deadline=None)
    @pytest.mark.asyncio
    async def test_revocation_only_affects_its_own_token(self, count: int, revoke_index: int) -> None:
        """**Feature: livecast, Property 9: Token Revocation**

        For any set of issued tokens, revoking one SHALL reject exactly that
        token and leave the others valid.
        """
        store = ExpiringKeyStore(InMemoryRedis(), "auth:revoked")
        tokens = [create_access_token(uuid.uuid4())[0] for _ in range(count)]
        target = revoke_index % count

        await revoke_token(tokens[target], store)

        for i, token in enumerate(tokens):
            payload = await validate_token(token, store)
            if i == target:
                assert payload is None
            else:
                assert payload is not None


class TestRoleGuards:
    @pytest.mark.asyncio
    async def test_creator_guard(self, helpers) -> None:
        creator = helpers.make_user(role=UserRole.CREATOR)
        assert await require_creator(creator) is creator

        with pytest.raises(CreatorAccessDenied) as exc_info:
            await require_creator(helpers.make_user(role=UserRole.VIEWER))
        assert isinstance(exc_info.value, HTTPException)
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_guard(self, helpers) -> None:
        admin = helpers.make_user(role=UserRole.ADMIN)
        assert await require_admin(admin) is admin
        # Admins may also broadcast
        assert await require_creator(admin) is admin

        with pytest.raises(AdminAccessDenied):
            await require_admin(helpers.make_user(role=UserRole.CREATOR))
