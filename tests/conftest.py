from __future__ import annotations

import os
import tempfile
from pathlib import Path

from cryptography.fernet import Fernet

_TEST_DIR = Path(tempfile.mkdtemp(prefix="jobflow-tests-"))
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DIR / 'jobflow.db'}"
os.environ["DATA_DIR"] = str(_TEST_DIR)
os.environ["ENCRYPTION_KEY"] = Fernet.generate_key().decode("ascii")
os.environ["SENDGRID_API_KEY"] = ""
os.environ["CAMPAIGN_SEND_DELAY_MS"] = "0"

import pytest  # noqa: E402

from jobflow.db.base import Base  # noqa: E402
from jobflow.db.repositories import Repository  # noqa: E402
from jobflow.db.session import SessionLocal, engine  # noqa: E402
from jobflow.types import UserUpsert  # noqa: E402


@pytest.fixture(autouse=True)
def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db():
    with SessionLocal() as session:
        yield session


@pytest.fixture()
def repo(db) -> Repository:
    return Repository(db)


@pytest.fixture()
def user_id(repo: Repository) -> str:
    repo.upsert_user(UserUpsert(id="user-1", email="jane@example.com", first_name="Jane"))
    return "user-1"
