"""Session context and the auth service."""
import pytest

from examlift.auth import AuthError, AuthService, NotAuthenticatedError, SessionContext
from examlift.errors import ValidationError
from examlift.models import AuthUser


@pytest.fixture
def context():
    return SessionContext()


@pytest.fixture
def auth(fake_client, context, db):
    return AuthService(fake_client, context, db)


def test_context_starts_loading_and_anonymous(context):
    assert context.loading
    assert not context.is_authenticated
    with pytest.raises(NotAuthenticatedError):
        context.require_user()


def test_context_notifies_listeners(context):
    seen = []
    context.subscribe(seen.append)
    user = AuthUser(id="u1", email="ada@example.com", username="ada")
    context.login(user)
    context.logout()
    assert seen == [user, None]
    assert not context.loading


@pytest.mark.parametrize("email, password, username, message", [
    ("", "secret1", "ada", "Please fill all fields"),
    ("ada@example.com", "secret1", "", "Please fill all fields"),
    ("ada@example.com", "12345", "ada", "Password must be at least 6 characters"),
])
def test_sign_up_validation(auth, email, password, username, message):
    with pytest.raises(ValidationError, match=message):
        auth.sign_up(email, password, username)


def test_sign_up_logs_user_in(auth, context):
    user = auth.sign_up("ada@example.com", "secret1", "ada_l")
    assert context.user == user
    assert user.username == "ada_l"
    assert not user.is_admin


def test_duplicate_sign_up_is_auth_error(auth):
    auth.sign_up("ada@example.com", "secret1", "ada")
    with pytest.raises(AuthError, match="already registered"):
        auth.sign_up("ada@example.com", "secret1", "ada")


def test_sign_in_requires_fields(auth):
    with pytest.raises(ValidationError, match="Please enter email and password"):
        auth.sign_in("ada@example.com", "")


def test_sign_in_wrong_password(auth, context):
    auth.sign_up("ada@example.com", "secret1", "ada")
    context.logout()
    with pytest.raises(AuthError):
        auth.sign_in("ada@example.com", "wrong-pass")
    assert context.user is None


def test_sign_in_reads_profile(auth, context, fake_client):
    user = auth.sign_up("ada@example.com", "secret1", "ada")
    fake_client.seed("user_profiles", [{"id": user.id, "username": "Ada Admin", "is_admin": True}])
    auth.sign_out()
    assert context.user is None

    signed_in = auth.sign_in("ada@example.com", "secret1")
    assert signed_in.username == "Ada Admin"
    assert context.is_admin


def test_username_falls_back_to_email(auth):
    raw = type("RawUser", (), {"id": "u9", "email": "chidi@example.com", "user_metadata": {}})()
    assert auth.map_user(raw).username == "chidi"


def test_restore_existing_session(auth, context):
    user = auth.sign_up("ada@example.com", "secret1", "ada")
    fresh = SessionContext()
    restored = AuthService(auth.client, fresh, auth.db).restore()
    assert restored.id == user.id
    assert fresh.is_authenticated
    assert not fresh.loading


def test_restore_without_session(auth, context):
    assert auth.restore() is None
    assert not context.loading
    assert not context.is_authenticated
