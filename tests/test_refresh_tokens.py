"""Tests for app.services.refresh_tokens against an in-memory SQLite database."""

import unittest
from datetime import timedelta

from sqlalchemy.orm import sessionmaker

from app.core.database import build_engine
from app.core.errors import AuthenticationError
from app.models import Base, RefreshToken, UserAccount
from app.models.base import as_utc, utcnow
from app.services.refresh_tokens import (
    RefreshTokenErrorKind,
    RefreshTokenManager,
    hash_token,
)


class RefreshTokenTestCase(unittest.TestCase):
    """Fresh database with one user per test."""

    max_tokens = 5

    def setUp(self) -> None:
        self.engine = build_engine("sqlite://")
        Base.metadata.create_all(self.engine)
        self.session = sessionmaker(bind=self.engine, autoflush=False)()
        self.user = UserAccount(email="alice@example.com", password_hash="x", role="USER")
        self.session.add(self.user)
        self.session.commit()
        self.manager = RefreshTokenManager(self.session, max_tokens_per_user=self.max_tokens)

    def tearDown(self) -> None:
        self.session.close()
        self.engine.dispose()

    def _stored(self, raw: str) -> RefreshToken:
        return (
            self.session.query(RefreshToken)
            .filter(RefreshToken.token_hash == hash_token(raw))
            .one()
        )


class TestIssue(RefreshTokenTestCase):
    def test_only_digest_is_stored(self) -> None:
        raw = self.manager.issue(self.user.id)
        self.session.commit()
        self.assertGreaterEqual(len(raw), 43)  # 32 bytes base64url
        rows = self.session.query(RefreshToken).all()
        self.assertEqual(len(rows), 1)
        self.assertNotEqual(rows[0].token_hash, raw)
        self.assertEqual(rows[0].token_hash, hash_token(raw))
        self.assertFalse(rows[0].is_revoked)

    def test_tokens_are_unique(self) -> None:
        tokens = {self.manager.issue(self.user.id) for _ in range(20)}
        self.assertEqual(len(tokens), 20)

    def test_expiry_uses_ttl(self) -> None:
        manager = RefreshTokenManager(self.session, ttl=timedelta(days=7))
        raw = manager.issue(self.user.id)
        stored = self._stored(raw)
        remaining = as_utc(stored.expires_at) - utcnow()
        self.assertGreater(remaining, timedelta(days=6, hours=23))


class TestPerUserCap(RefreshTokenTestCase):
    def test_active_count_never_exceeds_cap(self) -> None:
        for _ in range(12):
            self.manager.issue(self.user.id)
            self.session.commit()
            self.assertLessEqual(len(self.manager.active_tokens(self.user.id)), self.max_tokens)
        self.assertEqual(len(self.manager.active_tokens(self.user.id)), self.max_tokens)

    def test_oldest_tokens_are_revoked_first(self) -> None:
        issued = [self.manager.issue(self.user.id) for _ in range(self.max_tokens + 1)]
        self.session.commit()
        self.assertEqual(
            self.manager.validate(issued[0]).error, RefreshTokenErrorKind.REVOKED
        )
        for raw in issued[1:]:
            self.assertTrue(self.manager.validate(raw).ok)


class TestValidate(RefreshTokenTestCase):
    def test_valid_token(self) -> None:
        raw = self.manager.issue(self.user.id)
        result = self.manager.validate(raw)
        self.assertTrue(result.ok)
        self.assertEqual(result.token.user_id, self.user.id)

    def test_unknown_token(self) -> None:
        result = self.manager.validate("never-issued")
        self.assertFalse(result.ok)
        self.assertEqual(result.error, RefreshTokenErrorKind.NOT_FOUND)

    def test_expired_token(self) -> None:
        raw = self.manager.issue(self.user.id)
        stored = self._stored(raw)
        stored.expires_at = utcnow() - timedelta(seconds=1)
        self.session.commit()
        self.assertEqual(self.manager.validate(raw).error, RefreshTokenErrorKind.EXPIRED)

    def test_revoked_token(self) -> None:
        raw = self.manager.issue(self.user.id)
        self.assertTrue(self.manager.revoke(raw))
        self.session.commit()
        self.assertEqual(self.manager.validate(raw).error, RefreshTokenErrorKind.REVOKED)

    def test_revoke_unknown_returns_false(self) -> None:
        self.assertFalse(self.manager.revoke("never-issued"))


class TestRotate(RefreshTokenTestCase):
    def test_rotation_revokes_old_and_returns_new(self) -> None:
        old_raw = self.manager.issue(self.user.id)
        self.session.commit()
        new_raw = self.manager.rotate(self.manager.validate(old_raw).token)
        self.session.commit()
        self.assertNotEqual(old_raw, new_raw)
        self.assertEqual(self.manager.validate(old_raw).error, RefreshTokenErrorKind.REVOKED)
        self.assertTrue(self.manager.validate(new_raw).ok)

    def test_second_rotation_of_same_record_fails(self) -> None:
        raw = self.manager.issue(self.user.id)
        self.session.commit()
        stale = self.manager.validate(raw).token
        self.manager.rotate(stale)
        self.session.commit()
        # A concurrent request that validated before the first rotation committed.
        with self.assertRaises(AuthenticationError) as ctx:
            self.manager.rotate(stale)
        self.assertEqual(ctx.exception.reason, "replayed")


class TestRevokeAll(RefreshTokenTestCase):
    def test_revokes_every_token_of_user(self) -> None:
        other = UserAccount(email="bob@example.com", password_hash="x", role="USER")
        self.session.add(other)
        self.session.commit()
        mine = [self.manager.issue(self.user.id) for _ in range(3)]
        theirs = self.manager.issue(other.id)
        self.session.commit()

        self.assertEqual(self.manager.revoke_all(self.user.id), 3)
        self.session.commit()

        for raw in mine:
            self.assertEqual(self.manager.validate(raw).error, RefreshTokenErrorKind.REVOKED)
        self.assertTrue(self.manager.validate(theirs).ok)


class TestSweep(RefreshTokenTestCase):
    max_tokens = 10

    def test_deletes_expired_and_stale_revoked_only(self) -> None:
        now = utcnow()
        active = self.manager.issue(self.user.id)
        expired = self.manager.issue(self.user.id)
        recently_revoked = self.manager.issue(self.user.id)
        long_revoked = self.manager.issue(self.user.id)
        self._stored(expired).expires_at = now - timedelta(hours=1)
        recent = self._stored(recently_revoked)
        recent.is_revoked = True
        recent.updated_at = now - timedelta(days=1)
        old = self._stored(long_revoked)
        old.is_revoked = True
        old.updated_at = now - timedelta(days=31)
        self.session.commit()

        result = self.manager.sweep()

        self.assertEqual(result.expired_deleted, 1)
        self.assertEqual(result.revoked_deleted, 1)
        self.assertEqual(result.total, 2)
        remaining = {t.token_hash for t in self.session.query(RefreshToken).all()}
        self.assertEqual(remaining, {hash_token(active), hash_token(recently_revoked)})

    def test_sweep_is_idempotent(self) -> None:
        self.manager.issue(self.user.id)
        self.session.commit()
        self.assertEqual(self.manager.sweep().total, 0)
        self.assertEqual(self.manager.sweep().total, 0)
        self.assertEqual(self.session.query(RefreshToken).count(), 1)

    def test_stats(self) -> None:
        self.manager.issue(self.user.id)
        revoked = self.manager.issue(self.user.id)
        self.manager.revoke(revoked)
        self.session.commit()
        stats = self.manager.stats()
        self.assertEqual(stats.total, 2)
        self.assertEqual(stats.active, 1)
        self.assertEqual(stats.revoked, 1)
        self.assertEqual(stats.expired, 0)


class TestAccountDeletionCascade(RefreshTokenTestCase):
    def test_tokens_do_not_outlive_account(self) -> None:
        self.manager.issue(self.user.id)
        self.session.commit()
        self.session.delete(self.user)
        self.session.commit()
        self.assertEqual(self.session.query(RefreshToken).count(), 0)


if __name__ == "__main__":
    unittest.main()
