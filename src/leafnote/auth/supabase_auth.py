"""Supabase (GoTrue) authentication.

Supports magic-link sign-in (send, then verify the e-mailed code), password
sign-up and sign-in, throttled password reset requests and sign-out. The
signed-in session is persisted in the local store so the CLI can pick it up
again on the next run.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..db.store import SESSION_KEY
from ..sync.supabase import SupabaseClient, SupabaseError
from .session import Identity, SessionContext

logger = logging.getLogger(__name__)

PASSWORD_RESET_COOLDOWN_SECONDS = 60


class AuthErrorKind(str, Enum):
    """Broad classes of authentication failure."""

    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_CODE = "invalid_code"
    EMAIL_NOT_CONFIRMED = "email_not_confirmed"
    RATE_LIMITED = "rate_limited"
    INVALID_INPUT = "invalid_input"
    GENERIC = "generic"


USER_MESSAGES = {
    AuthErrorKind.INVALID_CREDENTIALS: "Invalid email or password.",
    AuthErrorKind.INVALID_CODE: (
        "That sign-in code is invalid or has expired. Request a new one with --resend."
    ),
    AuthErrorKind.EMAIL_NOT_CONFIRMED: (
        "Your email address is not confirmed yet. Check your inbox for the confirmation link."
    ),
    AuthErrorKind.RATE_LIMITED: "Too many attempts. Please wait a minute and try again.",
    AuthErrorKind.INVALID_INPUT: "Please enter a valid email address.",
    AuthErrorKind.GENERIC: "Something went wrong while talking to the sign-in service.",
}


class AuthError(Exception):
    """Authentication failure with a message fit for the user."""

    def __init__(self, kind: AuthErrorKind, detail: Optional[str] = None):
        self.kind = kind
        self.detail = detail
        super().__init__(detail or USER_MESSAGES[kind])

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.kind]

    @property
    def needs_confirmation_or_credentials(self) -> bool:
        """True for the errors the user can fix themselves."""
        return self.kind in (AuthErrorKind.INVALID_CREDENTIALS, AuthErrorKind.EMAIL_NOT_CONFIRMED)


def classify_error(error: SupabaseError) -> AuthErrorKind:
    """Map a GoTrue error response to an AuthErrorKind."""
    code = (error.code or "").lower()
    message = (error.message or "").lower()

    if "not_confirmed" in code or "not confirmed" in message:
        return AuthErrorKind.EMAIL_NOT_CONFIRMED
    if code == "otp_expired" or "token has expired or is invalid" in message:
        return AuthErrorKind.INVALID_CODE
    if code in ("invalid_grant", "invalid_credentials") or "invalid login credentials" in message:
        return AuthErrorKind.INVALID_CREDENTIALS
    if error.status == 429 or "rate_limit" in code or "rate limit" in message:
        return AuthErrorKind.RATE_LIMITED
    if code in ("validation_failed", "email_address_invalid") or "invalid email" in message:
        return AuthErrorKind.INVALID_INPUT
    return AuthErrorKind.GENERIC


def _is_rejection(error: SupabaseError) -> bool:
    """True when the server answered with a 4xx, False for outages and timeouts."""
    return error.status is not None and 400 <= error.status < 500


@dataclass
class AuthResult:
    """Outcome of an auth call that did not fail."""

    message: str
    identity: Optional[Identity] = None


class SupabaseAuth:
    """Authentication flows against Supabase, bound to a session context."""

    def __init__(
        self,
        client: SupabaseClient,
        context: SessionContext,
        reset_cooldown: int = PASSWORD_RESET_COOLDOWN_SECONDS,
    ):
        self.client = client
        self.context = context
        self.reset_cooldown = reset_cooldown

    # ========================================================================
    # Helpers
    # ========================================================================

    def _call(self, method: str, path: str, params: Optional[dict] = None, body: Optional[dict] = None):
        try:
            return self.client.request(method, f"/auth/v1{path}", params=params, json=body)
        except SupabaseError as e:
            kind = classify_error(e)
            logger.warning("Auth call %s failed (%s): %s", path, kind.value, e)
            raise AuthError(kind, e.message)

    @staticmethod
    def _require_email(email: str) -> str:
        email = (email or "").strip()
        if not email or "@" not in email:
            raise AuthError(AuthErrorKind.INVALID_INPUT)
        return email

    def _start_session(self, data: dict) -> Identity:
        """Adopt a token response: remember tokens, publish the identity."""
        user = data.get("user") or {}
        if not data.get("access_token") or not user.get("id"):
            raise AuthError(AuthErrorKind.GENERIC, "Session response missing token or user")

        identity = Identity(id=user["id"], email=user.get("email"))
        self.context.store.set_json(SESSION_KEY, {
            "access_token": data["access_token"],
            "refresh_token": data.get("refresh_token"),
            "user": {"id": identity.id, "email": identity.email},
        })
        self.client.set_access_token(data["access_token"])
        self.context.identities.set_identity(identity)
        return identity

    def _end_session(self) -> None:
        self.context.store.delete(SESSION_KEY)
        self.client.set_access_token(None)
        self.context.identities.set_identity(None)

    # ========================================================================
    # Flows
    # ========================================================================

    def send_magic_link(self, email: str, resend: bool = False) -> AuthResult:
        """E-mail a one-time sign-in link.

        A link already sent to this address is not sent again unless
        `resend` is set.
        """
        email = self._require_email(email)
        store = self.context.store
        if store.has_magic_link_marker(email) and not resend:
            return AuthResult(
                message="A magic link was already sent to this address. Check your inbox."
            )

        self._call("POST", "/otp", body={"email": email, "create_user": True})
        store.mark_magic_link_sent(email)
        return AuthResult(message="Check your email for the magic link.")

    def sign_up(self, email: str, password: str) -> AuthResult:
        """Create an account with a password."""
        email = self._require_email(email)
        if not password:
            raise AuthError(AuthErrorKind.INVALID_CREDENTIALS, "Password is required")

        data = self._call("POST", "/signup", body={"email": email, "password": password}) or {}
        if data.get("access_token"):
            identity = self._start_session(data)
            return AuthResult(message=f"Signed up and signed in as {identity.email}.", identity=identity)
        return AuthResult(message="Check your email to confirm your account, then sign in.")

    def sign_in(self, email: str, password: str) -> AuthResult:
        """Sign in with e-mail and password."""
        email = self._require_email(email)
        data = self._call(
            "POST",
            "/token",
            params={"grant_type": "password"},
            body={"email": email, "password": password},
        ) or {}
        identity = self._start_session(data)
        self.context.store.clear_magic_link_marker(email)
        return AuthResult(message=f"Signed in as {identity.email}.", identity=identity)

    def verify_otp(self, email: str, token: str) -> AuthResult:
        """Finish a magic-link sign-in with the code from the e-mail."""
        email = self._require_email(email)
        token = (token or "").strip()
        if not token:
            raise AuthError(AuthErrorKind.INVALID_CODE, "Code is required")

        data = self._call(
            "POST",
            "/verify",
            body={"type": "email", "email": email, "token": token},
        ) or {}
        identity = self._start_session(data)
        self.context.store.clear_magic_link_marker(email)
        return AuthResult(message=f"Signed in as {identity.email}.", identity=identity)

    def request_password_reset(self, email: str) -> AuthResult:
        """E-mail a password reset link, at most once per cooldown window."""
        email = self._require_email(email)
        store = self.context.store
        wait = store.password_reset_wait(email, self.reset_cooldown)
        if wait > 0:
            return AuthResult(message=f"A reset email was sent recently. Try again in {wait}s.")

        self._call("POST", "/recover", body={"email": email})
        store.mark_password_reset_sent(email)
        return AuthResult(message="If an account exists, a password reset email is on its way.")

    def sign_out(self) -> AuthResult:
        """Sign out locally; the server-side logout is best effort."""
        if self.client.access_token:
            try:
                self.client.request("POST", "/auth/v1/logout")
            except SupabaseError as e:
                logger.info("Server-side logout failed: %s", e)
        self._end_session()
        return AuthResult(message="Signed out.")

    def restore_session(self) -> Optional[Identity]:
        """Resume a persisted session, refreshing the token if needed.

        The saved session is only discarded when the server rejects it. If
        Supabase cannot be reached the session is kept for the next run.

        Returns:
            The restored identity, or None if there was no usable session
        """
        try:
            saved = self.context.store.get_json(SESSION_KEY)
        except json.JSONDecodeError:
            saved = None
        if not isinstance(saved, dict) or not saved.get("access_token"):
            return None

        self.client.set_access_token(saved["access_token"])
        try:
            user = self.client.request("GET", "/auth/v1/user") or {}
            if user.get("id"):
                identity = Identity(id=user["id"], email=user.get("email"))
                self.context.identities.set_identity(identity)
                return identity
        except SupabaseError as e:
            if not _is_rejection(e):
                logger.warning("Could not reach Supabase to restore session: %s", e)
                self.client.set_access_token(None)
                return None
            logger.info("Saved session rejected (%s); trying refresh", e)

        refresh_token = saved.get("refresh_token")
        if refresh_token:
            self.client.set_access_token(None)
            try:
                data = self.client.request(
                    "POST",
                    "/auth/v1/token",
                    params={"grant_type": "refresh_token"},
                    json={"refresh_token": refresh_token},
                ) or {}
                return self._start_session(data)
            except SupabaseError as e:
                if not _is_rejection(e):
                    logger.warning("Could not reach Supabase to refresh session: %s", e)
                    return None
                logger.info("Session refresh rejected: %s", e)
            except AuthError as e:
                logger.info("Session refresh failed: %s", e)

        self._end_session()
        return None
