"""
Natours Backend — Migration Tests
==================================

What:  Runs the Alembic revisions against a file-backed SQLite database and
       checks the resulting schema matches the ORM models.
How:   A Config is built in code (no ini file, so logging is left alone)
       pointing at backend/alembic; tests are synchronous because env.py
       drives its async engine with asyncio.run().
"""

from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from natours.database import Base

ALEMBIC_DIR = Path(__file__).resolve().parent.parent / "alembic"


def alembic_config(db_path: Path) -> Config:
    config = Config()
    config.set_main_option("script_location", str(ALEMBIC_DIR))
    config.set_main_option("sqlalchemy.url", f"sqlite+aiosqlite:///{db_path}")
    return config


def inspect_tables(db_path: Path):
    engine = create_engine(f"sqlite:///{db_path}")
    try:
        inspector = inspect(engine)
        return {
            table: {column["name"] for column in inspector.get_columns(table)}
            for table in inspector.get_table_names()
            if table != "alembic_version"
        }
    finally:
        engine.dispose()


class TestMigrations:
    def test_upgrade_matches_models(self, tmp_path):
        db_path = tmp_path / "natours.db"
        command.upgrade(alembic_config(db_path), "head")

        tables = inspect_tables(db_path)
        expected = {
            name: {column.name for column in table.columns}
            for name, table in Base.metadata.tables.items()
        }
        assert tables == expected

    def test_unique_email_index(self, tmp_path):
        db_path = tmp_path / "natours.db"
        command.upgrade(alembic_config(db_path), "head")

        engine = create_engine(f"sqlite:///{db_path}")
        try:
            indexes = {ix["name"]: ix for ix in inspect(engine).get_indexes("users")}
        finally:
            engine.dispose()
        assert indexes["ix_users_email"]["unique"]

    def test_downgrade_drops_everything(self, tmp_path):
        db_path = tmp_path / "natours.db"
        config = alembic_config(db_path)
        command.upgrade(config, "head")
        command.downgrade(config, "base")
        assert inspect_tables(db_path) == {}
