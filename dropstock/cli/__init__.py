# dropstock/cli/__init__.py
import asyncio
from decimal import Decimal

import click

from dropstock.core.config import get_settings
from dropstock.core.logging_config import configure_logging
from dropstock.core.utils import ensure_utc, utc_now


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL for this command")
def cli(log_level):
    """Drop stock reservation tooling."""
    configure_logging(log_level or get_settings().LOG_LEVEL)


@cli.command("create-tables")
def create_tables():
    """Create all database tables directly using SQLAlchemy"""
    from dropstock import models  # noqa: F401
    from dropstock.database import Base, engine

    async def _create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await engine.dispose()
        click.echo("All tables created successfully!")

    asyncio.run(_create_tables())


@cli.command("seed-drop")
@click.option("--name", required=True)
@click.option("--price", required=True, type=Decimal)
@click.option("--stock", required=True, type=click.IntRange(min=0))
@click.option("--description", default=None)
@click.option("--image-url", default=None)
@click.option("--starts-at", type=click.DateTime(), default=None, help="UTC start time; omit to open immediately")
def seed_drop(name, price, stock, description, image_url, starts_at):
    """Create a drop with its full initial stock"""
    from dropstock.database import async_session, engine
    from dropstock.models.drop import Drop

    if price < 0:
        raise click.BadParameter("price must not be negative", param_hint="--price")

    async def _seed():
        now = utc_now()
        try:
            async with async_session() as session:
                drop = Drop(
                    name=name,
                    description=description,
                    price=price,
                    image_url=image_url,
                    stock=stock,
                    initial_stock=stock,
                    starts_at=ensure_utc(starts_at) if starts_at else None,
                    created_at=now,
                    updated_at=now,
                )
                session.add(drop)
                await session.commit()
                click.echo(f"Created drop {drop.id}: {drop.name} ({drop.stock} units at {drop.price})")
        finally:
            await engine.dispose()

    asyncio.run(_seed())


@cli.command("sweep")
def sweep():
    """Run one expiration sweep tick now"""
    from dropstock.database import async_session, engine
    from dropstock.integrations.notifier import NullEventEmitter
    from dropstock.services.expiration_sweeper import ExpirationSweeper

    async def _sweep():
        try:
            result = await ExpirationSweeper(async_session, emitter=NullEventEmitter()).sweep()
        finally:
            await engine.dispose()

        if result.skipped:
            click.echo("Another sweeper is running; tick skipped")
            return
        click.echo(f"Expired {result.expired_count} reservations")
        for drop_id, returned in sorted(result.stock_returned.items()):
            click.echo(f"  drop {drop_id}: +{returned} -> {result.new_stock[drop_id]}")

    asyncio.run(_sweep())


@cli.command("show-drop")
@click.argument("drop_id", type=int)
def show_drop(drop_id):
    """Show a drop's stock and its reservation counts"""
    from sqlalchemy import func, select

    from dropstock.database import async_session, engine
    from dropstock.models.drop import Drop
    from dropstock.models.reservation import Reservation

    async def _show():
        try:
            await _print_drop()
        finally:
            await engine.dispose()

    async def _print_drop():
        async with async_session() as session:
            drop = await session.get(Drop, drop_id)
            if drop is None:
                raise click.ClickException(f"Drop {drop_id} not found")

            counts = await session.execute(
                select(Reservation.status, func.count(Reservation.id))
                .where(Reservation.drop_id == drop_id)
                .group_by(Reservation.status)
            )

            click.echo(f"Drop {drop.id}: {drop.name}")
            click.echo(f"  price:  {drop.price}")
            click.echo(f"  stock:  {drop.stock}/{drop.initial_stock} ({drop.stock_percentage}%)")
            starts = drop.starts_at.isoformat() if drop.starts_at else "open"
            click.echo(f"  starts: {starts}")
            for status, count in counts:
                click.echo(f"  {status}: {count}")

    asyncio.run(_show())


if __name__ == "__main__":
    cli()
