"""Shared fixtures: a SQLite database per test, in-memory blob store, scripted AI backend."""

import logging
from typing import Any

import pytest

from fakes import ESSAY, OTHER_OWNER, OWNER, FakeAI, FakeBlobStore, criterion
from rubrica.io.storage import RUBRICS_BUCKET, SUBMISSIONS_BUCKET, FileFetcher
from rubrica.models.criterion import Criterion
from rubrica.settings import RubricaSettings
from rubrica.store.database import Database
from rubrica.store.repository import ServiceRepository, UserScopedRepository


@pytest.fixture
def settings(tmp_path) -> RubricaSettings:
    return RubricaSettings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'rubrica.db'}",
        storage_root=str(tmp_path / "storage"),
        jwt_secret="test-secret",
        model_timeout=5,
        storage_timeout=5,
    )


@pytest.fixture
def db(settings: RubricaSettings):
    database = Database(settings.database_url)
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def service(db: Database) -> ServiceRepository:
    return ServiceRepository(db)


@pytest.fixture
def user(db: Database) -> UserScopedRepository:
    return UserScopedRepository(db, OWNER)


@pytest.fixture
def other_user(db: Database) -> UserScopedRepository:
    return UserScopedRepository(db, OTHER_OWNER)


@pytest.fixture
def blobs() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def ai() -> FakeAI:
    return FakeAI()


@pytest.fixture
def fetcher(blobs: FakeBlobStore) -> FileFetcher:
    return FileFetcher(blobs, timeout_s=5)


@pytest.fixture
def seeded(service: ServiceRepository, blobs: FakeBlobStore) -> dict[str, Any]:
    """One rubric (c1, c2 at 50 points each), its full focus profile, and a pending essay."""
    rubric = service.create_rubric(
        owner=OWNER, subject_id="subject-1", name="Essay Rubric", file_path=f"{OWNER}/rubric.txt"
    )
    service.replace_criteria(
        rubric.id,
        [Criterion(**criterion("c1", 50)), Criterion(**criterion("c2", 50))],
    )
    profile = service.create_focus_profile(
        owner=OWNER, rubric_id=rubric.id, name="Everything", selected_criteria=["c1", "c2"]
    )
    path = f"{OWNER}/essay.txt"
    blobs.put(SUBMISSIONS_BUCKET, path, ESSAY.encode())
    rubric_text = b"Thesis (50 pts): clear claim.\nEvidence (50 pts): sources cited."
    blobs.put(RUBRICS_BUCKET, f"{OWNER}/rubric.txt", rubric_text)
    submission = service.create_submission(
        owner=OWNER, assignment_id="assignment-1", file_path=path, student_name="Ada"
    )
    return {"rubric": rubric, "profile": profile, "submission": submission}


@pytest.fixture(autouse=True)
def _restore_rubrica_logger():
    """configure_logging() turns off propagation; put the logger back so caplog keeps working."""
    import rubrica.logging as rubrica_logging

    logger = logging.getLogger(rubrica_logging.LOGGER_NAME)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
    rubrica_logging._configured = False
