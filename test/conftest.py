"""Pytest configuration for the resurfacing test suite."""

import os
import sys
from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy.orm import sessionmaker


def _ensure_test_env() -> None:
    """Seed required environment variables for tests."""
    os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
    os.environ.setdefault("LOG_JSON", "false")
    os.environ.pop("RESURFACING_PUSH_URL", None)


_ensure_test_env()

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))
sys.path.insert(0, str(Path(__file__).resolve().parent))


@pytest.fixture()
def sqlite_session_factory() -> Generator[sessionmaker, None, None]:
    """Provide a sqlite session factory with foreign keys enforced."""
    from models import Base
    from services.database import create_db_engine

    engine = create_db_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    yield factory
    engine.dispose()
