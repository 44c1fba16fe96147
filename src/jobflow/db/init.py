from __future__ import annotations

from jobflow.config import get_settings
from jobflow.db.base import Base
from jobflow.db.session import engine
from jobflow.db import models  # noqa: F401


def ensure_data_directories() -> None:
    get_settings().data_dir.mkdir(parents=True, exist_ok=True)


def init_database() -> dict[str, int]:
    ensure_data_directories()
    Base.metadata.create_all(bind=engine)
    return {"tables": len(Base.metadata.tables)}
