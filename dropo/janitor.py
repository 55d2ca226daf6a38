"""Purge expired verification challenges and sessions.

Expiry is otherwise only checked when a row is read, so this is meant to be
run from outside the API process, e.g. from cron::

    python -m dropo.janitor
"""
import logging
from datetime import datetime
from typing import Dict, Optional

from dotenv import load_dotenv
from sqlalchemy.engine import Engine
from sqlmodel import Session

from .core.config import settings
from .infrastructure.persistence.sqlalchemy.repositories.challenge_repository_sql import SqlChallengeRepository
from .infrastructure.persistence.sqlalchemy.repositories.session_repository_sql import SqlSessionRepository
from .utils import utcnow

logger = logging.getLogger(__name__)


def purge_expired(engine: Engine, now: Optional[datetime] = None) -> Dict[str, int]:
    now = now or utcnow()
    with Session(engine) as session:
        challenges = SqlChallengeRepository(session).purge_expired(now)
        sessions = SqlSessionRepository(session).purge_expired(now)
    logger.info(f"Purged {challenges} expired challenge(s) and {sessions} expired session(s)")
    return {"challenges": challenges, "sessions": sessions}


def main() -> None:
    load_dotenv()
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=settings.LOG_FORMAT
    )
    from .database import engine
    purge_expired(engine)


if __name__ == "__main__":
    main()
