"""Pytest configuration for the widget inventory test suite."""

import os
import sys
from pathlib import Path
from typing import Generator

import pytest


def _ensure_test_env() -> None:
    """Seed required environment variables for tests."""
    os.environ.setdefault("LOG_LEVEL", "DEBUG")
    os.environ.pop("AUDIT_FALLBACK_ACTOR", None)
    os.environ.pop("AUDIT_SESSION_VARIABLE", None)


_ensure_test_env()

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

import audit.binding  # noqa: E402,F401
import audit.capture  # noqa: E402,F401
from audit import context as audit_context  # noqa: E402
from models import Base  # noqa: E402


@pytest.fixture
def sqlite_session_factory(tmp_path: Path) -> Generator[sessionmaker, None, None]:
    """Provide a sqlite session factory backed by a temp file."""
    db_path = tmp_path / "inventory.db"
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture(autouse=True)
def reset_actor_context() -> Generator[None, None, None]:
    """Start and finish every test with an empty actor stack."""
    audit_context.clear()
    yield
    audit_context.clear()
