"""Tests for AuthService flows against an in-memory SQLite database."""

import unittest
from datetime import timedelta

from sqlalchemy.orm import sessionmaker

from app.core.database import build_engine
from app.core.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.models import Base, Profile, RefreshToken, UserAccount
from app.schemas.auth import RegisterRequest
from app.services.auth import AuthService
from app.services.refresh_tokens import RefreshTokenManager
from app.services.token_signer import TokenSigner
from app.services.users import CachedUserStore, UserCache, UserStore

SECRET = "auth-service-test-secret-with-32-plus-bytes"
PASSWORD = "Str0ng!Pass"


class AuthServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = build_engine("sqlite://")
        Base.metadata.create_all(self.engine)
        self.session = sessionmaker(bind=self.engine, autoflush=False)()
        self.signer = TokenSigner(SECRET, access_ttl=timedelta(hours=1))
        self.cache = UserCache()
        self.service = AuthService(
            self.session,
            self.signer,
            users=CachedUserStore(UserStore(self.session), self.cache),
            tokens=RefreshTokenManager(self.session),
        )

    def tearDown(self) -> None:
        self.session.close()
        self.engine.dispose()

    def _register(self, email: str = "alice@example.com", **fields):
        return self.service.register(RegisterRequest(email=email, password=PASSWORD, **fields))


class TestRegister(AuthServiceTestCase):
    def test_register_returns_tokens_and_profile(self) -> None:
        response = self._register(slug="Alice Smith", display_name="Alice", bio="  ")
        self.assertTrue(response.access_token)
        self.assertTrue(response.refresh_token)
        self.assertEqual(response.token_type, "Bearer")
        self.assertEqual(response.profile.slug, "alice-smith")
        self.assertEqual(response.profile.name, "Alice")
        self.assertEqual(response.profile.headline, "Member")
        self.assertIsNone(response.profile.bio)
        self.assertEqual(self.signer.extract_email(response.access_token), "alice@example.com")

    def test_email_is_stored_lowercased(self) -> None:
        self._register(email="  Alice@Example.COM ")
        account = self.session.query(UserAccount).one()
        self.assertEqual(account.email, "alice@example.com")
        self.assertNotEqual(account.password_hash, PASSWORD)

    def test_slug_generated_from_display_name(self) -> None:
        first = self._register(email="a@example.com", display_name="José Núñez")
        second = self._register(email="b@example.com", display_name="Jose Nunez")
        self.assertEqual(first.profile.slug, "jose-nunez")
        self.assertEqual(second.profile.slug, "jose-nunez-1")

    def test_duplicate_email_conflicts(self) -> None:
        self._register()
        with self.assertRaises(ConflictError) as ctx:
            self._register(email="ALICE@example.com")
        self.assertEqual(ctx.exception.status_code, 409)

    def test_taken_slug_conflicts(self) -> None:
        self._register(slug="alice")
        with self.assertRaises(ConflictError):
            self._register(email="other@example.com", slug="Alice")
        self.assertEqual(self.session.query(UserAccount).count(), 1)

    def test_blank_fields_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self.service.register(RegisterRequest(email="  ", password=PASSWORD))
        with self.assertRaises(ValidationError):
            self.service.register(RegisterRequest(email="a@example.com", password="   "))

    def test_invalid_email_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self._register(email="not-an-email")

    def test_weak_password_rejected(self) -> None:
        for weak in ("short1!", "alllowercase1!", "NoDigits!!", "NoSpecial123"):
            with self.assertRaises(ValidationError):
                self.service.register(RegisterRequest(email="a@example.com", password=weak))
        self.assertEqual(self.session.query(UserAccount).count(), 0)


class TestLogin(AuthServiceTestCase):
    def test_login_after_register(self) -> None:
        registered = self._register(slug="alice")
        response = self.service.login("Alice@Example.com", PASSWORD)
        self.assertEqual(response.profile.slug, registered.profile.slug)
        self.assertNotEqual(response.refresh_token, registered.refresh_token)

    def test_wrong_password_and_unknown_user_look_the_same(self) -> None:
        self._register()
        with self.assertRaises(AuthenticationError) as wrong:
            self.service.login("alice@example.com", "Wr0ng!Pass")
        with self.assertRaises(AuthenticationError) as unknown:
            self.service.login("nobody@example.com", PASSWORD)
        self.assertEqual(wrong.exception.message, unknown.exception.message)
        self.assertEqual(wrong.exception.reason, "bad_password")
        self.assertEqual(unknown.exception.reason, "unknown_user")

    def test_missing_credentials_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self.service.login("", PASSWORD)
        with self.assertRaises(ValidationError):
            self.service.login("alice@example.com", None)


class TestRefresh(AuthServiceTestCase):
    def test_refresh_rotates(self) -> None:
        registered = self._register()
        refreshed = self.service.refresh(registered.refresh_token)
        self.assertNotEqual(refreshed.refresh_token, registered.refresh_token)
        self.assertEqual(self.signer.extract_email(refreshed.access_token), "alice@example.com")
        self.assertIsNotNone(refreshed.profile)

    def test_old_token_rejected_after_rotation(self) -> None:
        registered = self._register()
        self.service.refresh(registered.refresh_token)
        with self.assertRaises(AuthenticationError) as ctx:
            self.service.refresh(registered.refresh_token)
        self.assertEqual(ctx.exception.reason, "revoked")

    def test_unknown_token_rejected(self) -> None:
        with self.assertRaises(AuthenticationError) as ctx:
            self.service.refresh("never-issued")
        self.assertEqual(ctx.exception.reason, "not_found")
        self.assertEqual(ctx.exception.message, "Invalid refresh token")


class TestLogout(AuthServiceTestCase):
    def test_logout_revokes_every_refresh_token(self) -> None:
        first = self._register()
        second = self.service.login("alice@example.com", PASSWORD)
        user = self.service.users.find_by_email("alice@example.com")
        self.assertEqual(self.service.logout(user), 2)
        for raw in (first.refresh_token, second.refresh_token):
            with self.assertRaises(AuthenticationError):
                self.service.refresh(raw)

    def test_access_token_survives_logout(self) -> None:
        registered = self._register()
        user = self.service.users.find_by_email("alice@example.com")
        self.service.logout(user)
        self.assertTrue(self.signer.is_valid(registered.access_token, user))


class TestDeleteAccount(AuthServiceTestCase):
    def test_delete_removes_account_profile_and_tokens(self) -> None:
        self._register()
        user = self.service.users.find_by_email("alice@example.com")
        self.service.delete_account(user)
        self.assertEqual(self.session.query(UserAccount).count(), 0)
        self.assertEqual(self.session.query(Profile).count(), 0)
        self.assertEqual(self.session.query(RefreshToken).count(), 0)
        self.assertIsNone(self.cache.get("alice@example.com"))
        with self.assertRaises(AuthenticationError):
            self.service.login("alice@example.com", PASSWORD)

    def test_delete_missing_account(self) -> None:
        self._register()
        user = self.service.users.find_by_email("alice@example.com")
        self.service.delete_account(user)
        with self.assertRaises(NotFoundError):
            self.service.delete_account(user)


class TestMe(AuthServiceTestCase):
    def test_me_includes_profile(self) -> None:
        self._register(slug="alice")
        user = self.service.users.find_by_email("alice@example.com")
        me = self.service.me(user)
        self.assertEqual(me.email, "alice@example.com")
        self.assertEqual(me.role, "USER")
        self.assertEqual(me.profile.slug, "alice")


if __name__ == "__main__":
    unittest.main()
