"""
Wiring for the auth components.

Everything security-relevant is built once, from one ``AuthConfig``, and
shared by reference: the application keeps the result on ``app.state.auth``.
"""

from dataclasses import dataclass
from typing import Optional

from backend.app.core.config import AuthConfig, Settings, settings as default_settings
from backend.app.core.jwt import TokenIssuer
from backend.app.core.security import PasswordHasher
from backend.app.domain.auth.credential_store import CredentialStore
from backend.app.domain.auth.lockout import LockoutPolicy
from backend.app.domain.auth.password_reset import PasswordResetService, ResetTokenNotifier
from backend.app.domain.auth.session_manager import SessionManager


@dataclass
class AuthServices:
    config: AuthConfig
    hasher: PasswordHasher
    store: CredentialStore
    issuer: TokenIssuer
    lockout: LockoutPolicy
    sessions: SessionManager
    resets: PasswordResetService


def build_auth_services(
    source: Optional[Settings] = None,
    notifier: Optional[ResetTokenNotifier] = None,
) -> AuthServices:
    source = source or default_settings
    config = AuthConfig.from_settings(source)

    hasher = PasswordHasher(config.hash_rounds)
    store = CredentialStore(hasher)
    issuer = TokenIssuer(config)
    lockout = LockoutPolicy(config.max_login_attempts, config.lockout_duration)

    return AuthServices(
        config=config,
        hasher=hasher,
        store=store,
        issuer=issuer,
        lockout=lockout,
        sessions=SessionManager(store, issuer, lockout),
        resets=PasswordResetService(
            config,
            store,
            notifier or ResetTokenNotifier(debug=source.debug),
        ),
    )
