"""Alembic schema management for the inventory record store."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from inventory_sync.config import get_database_config

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

MIGRATIONS_PATH: Final[Path] = Path(__file__).resolve().parent
PROJECT_ROOT: Final[Path] = MIGRATIONS_PATH.parents[4]
PYPROJECT_PATH: Final[Path] = PROJECT_ROOT / "pyproject.toml"


def _alembic_options() -> dict[str, str]:
    """Return the ``[tool.alembic]`` table of pyproject.toml, if present."""

    if not PYPROJECT_PATH.is_file():
        return {}
    with PYPROJECT_PATH.open("rb") as handle:
        document = tomllib.load(handle)
    section = document.get("tool", {}).get("alembic", {})
    return {str(key): str(value) for key, value in section.items()}


def build_config(*, database_uri: str | None = None) -> Config:
    """Alembic config pointing at the bundled migration scripts."""

    config = Config()
    options = _alembic_options()

    # configured location wins only when it exists
    script_location = MIGRATIONS_PATH
    configured = options.pop("script_location", None)
    if configured is not None:
        candidate = Path(configured)
        candidate = candidate if candidate.is_absolute() else PROJECT_ROOT / candidate
        if candidate.is_dir():
            script_location = candidate
    config.set_main_option("script_location", str(script_location))

    for key, value in options.items():
        config.set_main_option(key, value)
    if database_uri is not None:
        config.set_main_option("sqlalchemy.url", database_uri)
    return config


def head_revision() -> str | None:
    return ScriptDirectory.from_config(build_config()).get_current_head()


def current_revision(engine: Engine) -> str | None:
    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Upgrade the database schema to the latest revision."""

    if engine is not None:
        config = build_config()
        with engine.begin() as connection:
            config.attributes["connection"] = connection
            command.upgrade(config, "head")
        return

    uri = database_uri or get_database_config().uri
    log.info("Upgrading schema at %s", uri)
    command.upgrade(build_config(database_uri=uri), "head")
