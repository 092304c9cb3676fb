"""Sign-up, sign-in and the per-browser session context."""
import logging
from typing import Callable, List, Optional

from supabase import Client

from engine import MIN_PASSWORD_LENGTH
from examlift.database import DatabaseClient
from examlift.errors import ExamLiftError, ValidationError
from examlift.models import AuthUser

logger = logging.getLogger(__name__)


class NotAuthenticatedError(ExamLiftError):
    """A page that needs a signed-in user was opened without one."""


class AuthError(ExamLiftError):
    """The auth provider rejected the request (bad credentials, taken email, ...)."""


class SessionContext:
    """
    Who is signed in for this browser session.

    Created once at app start and handed to the pages that need it; login() and
    logout() are the only ways the user changes. Listeners are told about every change.
    """

    def __init__(self):
        self.user: Optional[AuthUser] = None
        self.loading = True
        self._listeners: List[Callable[[Optional[AuthUser]], None]] = []

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return bool(self.user and self.user.is_admin)

    def subscribe(self, listener: Callable[[Optional[AuthUser]], None]):
        self._listeners.append(listener)

    def login(self, user: AuthUser):
        self.user = user
        self.loading = False
        self._notify()

    def logout(self):
        self.user = None
        self.loading = False
        self._notify()

    def require_user(self) -> AuthUser:
        if self.user is None:
            raise NotAuthenticatedError("Please log in to continue")
        return self.user

    def _notify(self):
        for listener in self._listeners:
            listener(self.user)


class AuthService:
    def __init__(self, client: Client, context: SessionContext, db: Optional[DatabaseClient] = None):
        self.client = client
        self.context = context
        self.db = db or DatabaseClient(client)

    def map_user(self, user) -> AuthUser:
        """Build an AuthUser from the auth provider's user plus its user_profiles row."""
        profile = self.db.get_profile(user.id) or {}
        metadata = getattr(user, "user_metadata", None) or {}
        email = user.email or ""
        username = (
            profile.get("username")
            or metadata.get("username")
            or metadata.get("full_name")
            or email.split("@")[0]
        )
        return AuthUser(
            id=user.id,
            email=email,
            username=username,
            avatar=metadata.get("avatar_url") or metadata.get("picture"),
            is_admin=bool(profile.get("is_admin")),
        )

    def sign_up(self, email: str, password: str, username: str) -> AuthUser:
        if not email or not password or not username:
            raise ValidationError("Please fill all fields")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        try:
            response = self.client.auth.sign_up({
                "email": email,
                "password": password,
                "options": {"data": {"username": username}},
            })
        except Exception as e:
            logger.error(f"Sign-up failed for {email}: {e}")
            raise AuthError(str(e) or "Failed to create account") from e
        if not response.user:
            raise AuthError("Failed to create account")
        user = self.map_user(response.user)
        self.context.login(user)
        logger.info("Created account %s", user.id)
        return user

    def sign_in(self, email: str, password: str) -> AuthUser:
        if not email or not password:
            raise ValidationError("Please enter email and password")
        try:
            response = self.client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as e:
            logger.warning(f"Sign-in failed for {email}: {e}")
            raise AuthError(str(e) or "Invalid credentials") from e
        if not response.user:
            raise AuthError("Invalid credentials")
        user = self.map_user(response.user)
        self.context.login(user)
        return user

    def sign_out(self):
        try:
            self.client.auth.sign_out()
        except Exception as e:
            logger.error(f"Sign-out failed: {e}")
            raise AuthError("Failed to logout") from e
        self.context.logout()

    def restore(self) -> Optional[AuthUser]:
        """Pick up an existing auth session, if the provider still has one."""
        try:
            session = self.client.auth.get_session()
        except Exception as e:
            logger.error(f"Could not restore session: {e}")
            session = None
        if session and session.user:
            user = self.map_user(session.user)
            self.context.login(user)
            return user
        self.context.loading = False
        return None
