"""Authentication and session state."""

from .session import Identity, IdentityProvider, SessionContext
from .supabase_auth import AuthError, AuthErrorKind, AuthResult, SupabaseAuth, classify_error

__all__ = [
    "Identity",
    "IdentityProvider",
    "SessionContext",
    "AuthError",
    "AuthErrorKind",
    "AuthResult",
    "SupabaseAuth",
    "classify_error",
]
