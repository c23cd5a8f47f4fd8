"""
Database seeding script for initial users.

Creates one ADMIN, one MANAGER and one EMPLOYEE account for development.
Passwords come from the environment, never from this file:

    SEED_ADMIN_PASSWORD, SEED_MANAGER_PASSWORD, SEED_EMPLOYEE_PASSWORD

Accounts whose password variable is unset are skipped. Existing accounts are
left alone, so the script can be re-run safely.
"""

import asyncio
import logging
import os
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.core.config import settings
from backend.app.core.logger import configure_logging
from backend.app.db.session import AsyncSessionLocal, Base, engine
from backend.app.domain.auth.factory import build_auth_services
from backend.app.models.enums import UserRole
from backend.app.models.audit_log import AuditLog  # noqa: F401

logger = logging.getLogger("feastfrenzy.seed")

SEED_USERS = [
    ("Admin", "admin@feastfrenzy.com", UserRole.ADMIN, "SEED_ADMIN_PASSWORD"),
    ("Manager", "manager@feastfrenzy.com", UserRole.MANAGER, "SEED_MANAGER_PASSWORD"),
    ("Employee", "employee@feastfrenzy.com", UserRole.EMPLOYEE, "SEED_EMPLOYEE_PASSWORD"),
]


async def seed_users():
    """Seed initial users with different roles."""
    configure_logging(settings.log_level)
    auth = build_auth_services(settings)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        logger.info("Starting user seeding...")
        created = 0

        for name, email, role, password_var in SEED_USERS:
            password = os.environ.get(password_var)
            if not password:
                logger.warning("%s not set, skipping %s", password_var, email)
                continue

            if await auth.store.get_by_email(db, email):
                logger.info("%s already exists, skipping", email)
                continue

            await auth.store.create_user(db, name, email, password, role=role)
            created += 1
            logger.info("Created %s user %s", role.value, email)

        await db.commit()
        logger.info("User seeding completed (%s created)", created)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed_users())
