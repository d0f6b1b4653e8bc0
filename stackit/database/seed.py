"""
stackit.database.seed — Master Admin Bootstrap
================================================

The master account is the singleton super-admin that moderation actions
can never target.  It is created (or an existing account promoted) from
environment variables on startup; credentials are never baked into code.

Idempotent — running it again only re-asserts the ``master`` role.
"""

from __future__ import annotations

import logging
import os

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from stackit.database.models import Role, User

logger = logging.getLogger(__name__)


def ensure_master_admin(
    engine: Engine,
    *,
    email: str,
    username: str,
    password: str,
) -> int:
    """Create or promote the master admin; returns its user id.

    Any other account still holding the master role is demoted to admin so
    the role stays a singleton.
    """
    from stackit.services.account_service import hash_password

    email = email.strip().lower()
    with Session(engine) as session:
        user = session.scalar(select(User).where(User.email == email))
        if user is None:
            user = User(
                username=username,
                email=email,
                password_hash=hash_password(password),
                role=Role.MASTER.value,
                reputation=1000,
                bio="Master Administrator",
            )
            session.add(user)
            logger.info("Master admin %s created.", email)
        elif user.role != Role.MASTER:
            user.role = Role.MASTER.value
            logger.info("Account %s promoted to master admin.", email)
        session.flush()

        for other in session.scalars(
            select(User).where(User.role == Role.MASTER.value, User.id != user.id)
        ):
            other.role = Role.ADMIN.value
            logger.warning("Demoted stale master account %s to admin.", other.id)

        session.commit()
        return user.id


def seed_master_admin_from_env(engine: Engine) -> int | None:
    """Run :func:`ensure_master_admin` if ``MASTER_ADMIN_EMAIL`` and
    ``MASTER_ADMIN_PASSWORD`` are set; otherwise do nothing."""
    email = os.getenv("MASTER_ADMIN_EMAIL", "").strip()
    password = os.getenv("MASTER_ADMIN_PASSWORD", "")
    if not email or not password:
        logger.info("MASTER_ADMIN_EMAIL/PASSWORD not set — skipping master admin seed.")
        return None
    username = os.getenv("MASTER_ADMIN_USERNAME", "master_admin").strip()
    return ensure_master_admin(engine, email=email, username=username, password=password)
