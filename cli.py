# Command line entry points for the trade ledger
import asyncio
import click

from core.config.settings import Settings
from core.logging import configure_logging


@click.group()
def cli():
    """Trade Ledger CLI"""
    configure_logging(Settings())


@cli.command()
@click.option("--host", default=None, help="Bind address (defaults to API__HOST)")
@click.option("--port", default=None, type=int, help="Bind port (defaults to API__PORT)")
def api(host, port):
    """Run the API server"""
    click.echo("Starting Trade Ledger API server...")
    from api.main import run as run_api
    run_api(host=host, port=port)


@cli.command("init-db")
@click.option("--drop", is_flag=True, help="Drop existing tables first")
def init_db(drop):
    """Create the database schema"""
    from core.database.connection import DatabaseManager

    settings = Settings()

    async def _init():
        db_manager = DatabaseManager(
            settings.database.url,
            environment=settings.environment.value,
            schema_management="create_all",
        )
        try:
            if drop:
                await db_manager.drop_all()
            await db_manager.init()
        finally:
            await db_manager.shutdown()

    asyncio.run(_init())
    click.echo("Database schema ready")


@cli.command()
def seed():
    """Seed demo users, instruments, prices and a deposit"""
    click.echo("Seeding demo data...")
    from scripts.seed_data import seed_data
    if asyncio.run(seed_data()):
        click.echo("Demo data seeded")
    else:
        click.echo("Demo data already present")


if __name__ == "__main__":
    cli()
