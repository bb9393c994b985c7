"""
Vision Quest CLI - Command line interface for the quest journal backend.

Usage:
    visionquest run             Start the API server
    visionquest db upgrade      Run database migrations
    visionquest db downgrade    Revert database migrations
    visionquest db current      Show the current migration
    visionquest seed-items      Load the item catalog from YAML
"""

import asyncio
import logging
import sys
from pathlib import Path

import click

from visionquest import __version__, config


def _alembic_config():
    """Use a local alembic.ini if present, otherwise the bundled migrations."""
    from alembic.config import Config

    alembic_ini = Path("alembic.ini")
    if alembic_ini.exists():
        return Config(str(alembic_ini))

    package_dir = Path(__file__).parent
    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(package_dir / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", config.DATABASE_URL)
    return alembic_cfg


@click.group()
@click.version_option(version=__version__, prog_name="visionquest")
@click.option("--log-level", default=config.LOG_LEVEL, help="Logging level (DEBUG, INFO, ...)")
def main(log_level: str):
    """Vision Quest - quest trees for personal goals."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option("--host", "-h", default=config.HOST, help="Host to bind to")
@click.option("--port", "-p", default=config.PORT, type=int, help="Port to bind to")
@click.option("--reload", "-r", is_flag=True, help="Enable auto-reload for development")
def run(host: str, port: int, reload: bool):
    """Start the Vision Quest API server."""
    import uvicorn

    click.echo(f"⏳ Starting Vision Quest on {host}:{port}...")
    uvicorn.run(
        "visionquest.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


@main.group()
def db():
    """Database management commands."""
    pass


@db.command()
@click.option("--revision", "-r", default="head", help="Revision to upgrade to")
def upgrade(revision: str):
    """Run database migrations to upgrade the schema."""
    from alembic import command

    try:
        command.upgrade(_alembic_config(), revision)
        click.echo(click.style("✅ Database upgraded successfully!", fg="green"))
    except Exception as e:
        click.echo(click.style(f"Error: {e}", fg="red"))
        sys.exit(1)


@db.command()
@click.option("--revision", "-r", default="-1", help="Revision to downgrade to")
def downgrade(revision: str):
    """Revert database migrations."""
    from alembic import command

    try:
        command.downgrade(_alembic_config(), revision)
        click.echo(click.style(f"✅ Database downgraded to {revision}", fg="green"))
    except Exception as e:
        click.echo(click.style(f"Error: {e}", fg="red"))
        sys.exit(1)


@db.command()
def current():
    """Show the current database revision."""
    from alembic import command

    command.current(_alembic_config())


@main.command("seed-items")
@click.argument(
    "path",
    required=False,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
def seed_items(path: Path | None):
    """Load catalog items from YAML files under PATH (default: bundled items)."""
    from visionquest.db import AsyncSessionLocal, engine
    from visionquest.engine.loader import seed_item_catalog

    items_dir = path or Path(config.WORLD_DATA_DIR) / "items"

    async def _seed() -> int:
        try:
            async with AsyncSessionLocal() as session:
                return await seed_item_catalog(session, items_dir)
        finally:
            await engine.dispose()

    added = asyncio.run(_seed())
    click.echo(f"🎁 Added {added} items from {items_dir}")


if __name__ == "__main__":
    main()
