"""Database migration CLI commands using Alembic programmatically."""

import typer
from alembic import command
from alembic.config import Config
from loguru import logger

db_app = typer.Typer()

ALEMBIC_INI = "alembic.ini"


@db_app.command()
def upgrade(
    revision: str = typer.Argument("head", help="Target revision"),
) -> None:
    """Run database migrations up to the target revision."""
    logger.info(f"Upgrading database to {revision}")
    command.upgrade(Config(ALEMBIC_INI), revision)
    logger.info("Database upgrade complete")


@db_app.command()
def downgrade(
    revision: str = typer.Argument("-1", help="Target revision"),
) -> None:
    """Roll back database migrations to the target revision."""
    logger.info(f"Downgrading database to {revision}")
    command.downgrade(Config(ALEMBIC_INI), revision)
    logger.info("Database downgrade complete")


@db_app.command()
def current() -> None:
    """Show the current database migration revision."""
    command.current(Config(ALEMBIC_INI), verbose=True)
