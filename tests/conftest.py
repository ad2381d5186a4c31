from __future__ import annotations

import pytest
from sqlalchemy import create_engine

from sqlmigrate.db import Database
from sqlmigrate.dialects import SQLiteDialect
from sqlmigrate.history import VersionHistory


@pytest.fixture
def database(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'migrate.sqlite'}")
    db = Database(engine.connect(), engine=engine)
    yield db
    db.close()


@pytest.fixture
def history(database):
    store = VersionHistory(database, SQLiteDialect(database))
    store.ensure_table()
    return store
