"""
Refresh token ledger tests: rotation, reuse, expiry and lineage.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from journal_sync.core.errors import InvalidRefreshToken, RefreshTokenExpired
from journal_sync.core.models import RefreshToken, User
from journal_sync.core.refresh_tokens import RefreshTokenStore, hash_token
from journal_sync.core.tokens import TokenIssuer


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(access_secret="access-secret", refresh_secret="refresh-secret")


@pytest.fixture
def store(db_session: AsyncSession, issuer: TokenIssuer) -> RefreshTokenStore:
    return RefreshTokenStore(db_session, issuer)


async def start_session(store: RefreshTokenStore, issuer: TokenIssuer, user: User) -> str:
    token = issuer.issue_refresh_token(user.id)
    await store.save(user.id, token, "10.0.0.1")
    await store.db.commit()
    return token


async def active_records(db: AsyncSession, user: User) -> list[RefreshToken]:
    result = await db.execute(
        select(RefreshToken)
        .where(RefreshToken.user_id == user.id, RefreshToken.is_active == True)  # noqa: E712
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


class TestRotate:

    async def test_rotate_issues_new_pair(
        self, store: RefreshTokenStore, issuer: TokenIssuer, test_user: User
    ):
        old = await start_session(store, issuer, test_user)

        rotation = await store.rotate(test_user.id, old, "10.0.0.2")

        assert rotation.refresh_token != old
        assert rotation.user.id == test_user.id
        assert issuer.verify_access(rotation.access_token)["sub"] == str(test_user.id)
        assert issuer.verify_refresh(rotation.refresh_token)["sub"] == str(test_user.id)

    async def test_rotate_revokes_and_links_old_record(
        self,
        store: RefreshTokenStore,
        issuer: TokenIssuer,
        test_user: User,
        db_session: AsyncSession,
    ):
        old = await start_session(store, issuer, test_user)
        rotation = await store.rotate(test_user.id, old, "10.0.0.2")

        chain = await store.lineage(test_user.id, old)
        revoked, successor = chain

        assert revoked.is_active is False
        assert revoked.revoked_at is not None
        assert revoked.revoked_by_ip == "10.0.0.2"
        assert revoked.replaced_by_token_hash == hash_token(rotation.refresh_token)
        assert successor.is_active is True
        assert successor.created_by_ip == "10.0.0.2"

        active = await active_records(db_session, test_user)
        assert [r.token_hash for r in active] == [hash_token(rotation.refresh_token)]

    async def test_second_rotation_of_same_token_fails(
        self, store: RefreshTokenStore, issuer: TokenIssuer, test_user: User
    ):
        old = await start_session(store, issuer, test_user)
        await store.rotate(test_user.id, old, "10.0.0.2")

        with pytest.raises(InvalidRefreshToken):
            await store.rotate(test_user.id, old, "10.0.0.3")

    async def test_unknown_token_fails(
        self, store: RefreshTokenStore, issuer: TokenIssuer, test_user: User
    ):
        await start_session(store, issuer, test_user)
        never_saved = issuer.issue_refresh_token(test_user.id)

        with pytest.raises(InvalidRefreshToken):
            await store.rotate(test_user.id, never_saved, "10.0.0.2")

    async def test_expired_record_fails(
        self,
        store: RefreshTokenStore,
        issuer: TokenIssuer,
        test_user: User,
        db_session: AsyncSession,
    ):
        old = await start_session(store, issuer, test_user)
        record = (await store.lineage(test_user.id, old))[0]
        record.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        await db_session.commit()

        with pytest.raises(RefreshTokenExpired):
            await store.rotate(test_user.id, old, "10.0.0.2")

    async def test_lineage_after_n_rotations(
        self, store: RefreshTokenStore, issuer: TokenIssuer, test_user: User
    ):
        first = await start_session(store, issuer, test_user)
        tokens = [first]
        for _ in range(4):
            rotation = await store.rotate(test_user.id, tokens[-1], "10.0.0.2")
            tokens.append(rotation.refresh_token)

        chain = await store.lineage(test_user.id, first)

        assert [r.token_hash for r in chain] == [hash_token(t) for t in tokens]
        assert [r.is_active for r in chain] == [False, False, False, False, True]
        for earlier in tokens[:-1]:
            with pytest.raises(InvalidRefreshToken):
                await store.rotate(test_user.id, earlier, "10.0.0.9")


class TestRevokeAll:

    async def test_revoke_all_deactivates_every_lineage(
        self,
        store: RefreshTokenStore,
        issuer: TokenIssuer,
        test_user: User,
        db_session: AsyncSession,
    ):
        first = await start_session(store, issuer, test_user)
        second = await start_session(store, issuer, test_user)

        revoked = await store.revoke_all(test_user.id, "10.0.0.5")

        assert revoked == 2
        assert await active_records(db_session, test_user) == []
        for token in (first, second):
            with pytest.raises(InvalidRefreshToken):
                await store.rotate(test_user.id, token, "10.0.0.5")
