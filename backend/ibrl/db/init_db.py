"""Create all tables and stamp the schema version. Run on app startup."""
import logging

from ibrl.db.base import Base
from ibrl.models import Automation, Interaction, Meta, PriceSample, Proposal  # noqa: F401 - register models

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1"


def init_db(database) -> None:
    Base.metadata.create_all(bind=database.engine)

    with database.session() as db:
        meta = db.get(Meta, "schema_version")
        if meta is None:
            db.add(Meta(key="schema_version", value=SCHEMA_VERSION))
            db.commit()
            logger.info(f"[DB] Initialized schema version {SCHEMA_VERSION}")
        elif meta.value != SCHEMA_VERSION:
            logger.warning(f"[DB] Database schema version {meta.value}, code expects {SCHEMA_VERSION}")
