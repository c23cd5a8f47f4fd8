"""
Password hashing and token digests.

Responsibilities
----------------
1. Password hashing / verification   (passlib pbkdf2_sha256, configurable rounds)
2. Timing parity for unknown accounts (dummy verification)
3. One-way digests for reset tokens  (SHA-256)
4. Random token generation

Hashing is CPU bound, so the async helpers push it onto the threadpool and
the event loop keeps serving other requests meanwhile.
"""

import hashlib
import secrets

from passlib.context import CryptContext
from starlette.concurrency import run_in_threadpool


class PasswordHasher:
    """Adaptive one-way password hashing with a configurable work factor."""

    def __init__(self, rounds: int):
        self._context = CryptContext(
            schemes=["pbkdf2_sha256"],
            deprecated="auto",
            pbkdf2_sha256__rounds=rounds,
        )

    def hash(self, plaintext: str) -> str:
        """Return the full passlib hash string (salt embedded)."""
        return self._context.hash(plaintext)

    def verify(self, plaintext: str, digest: str) -> bool:
        """Constant-time comparison of *plaintext* against *digest*."""
        try:
            return self._context.verify(plaintext, digest)
        except ValueError:
            # Unrecognised or corrupt hash: treat as a mismatch
            return False

    def dummy_verify(self) -> None:
        """Spend roughly one verification worth of time without a real hash."""
        self._context.dummy_verify()

    async def hash_async(self, plaintext: str) -> str:
        return await run_in_threadpool(self.hash, plaintext)

    async def verify_async(self, plaintext: str, digest: str) -> bool:
        return await run_in_threadpool(self.verify, plaintext, digest)

    async def dummy_verify_async(self) -> None:
        await run_in_threadpool(self.dummy_verify)


def generate_token(nbytes: int = 32) -> str:
    """High-entropy random token, hex encoded."""
    return secrets.token_hex(nbytes)


def hash_token(token: str) -> str:
    """SHA-256 hex digest used to store reset tokens at rest."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
