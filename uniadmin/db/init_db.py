from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session, sessionmaker

from uniadmin.db.base import Base
from uniadmin.models import identity as _identity  # noqa: F401  (register tables)
from uniadmin.models import workflow as _workflow  # noqa: F401  (register tables)
from uniadmin.models.identity import Action
from uniadmin.security.seed import apply_identity_seed, load_identity_seed

logger = logging.getLogger(__name__)


def init_db(
    engine: Engine,
    session_factory: sessionmaker[Session],
    seed_path: Path | None = None,
    *,
    bcrypt_rounds: int = 12,
) -> bool:
    """
    Create tables and, when `seed_path` is given and the graph is empty, load the identity seed.

    Returns True when the seed was applied. The seed file is validated before
    anything is written, so a broken file fails startup with `SeedConfigError`.
    """

    Base.metadata.create_all(bind=engine)

    if seed_path is None:
        return False

    with session_factory() as db:
        if _has_seed_data(db):
            logger.info("Identity graph already present; seed skipped")
            return False
        seed = load_identity_seed(seed_path)
        apply_identity_seed(db, seed, bcrypt_rounds=bcrypt_rounds)
    return True


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(Action.id).limit(1)).first() is not None
