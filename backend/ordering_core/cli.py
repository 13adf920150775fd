"""
Ordering core CLI.

Operator commands for local setup and for watching a branch live.
"""

import sys

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy import select

from shared.config.logging import setup_logging
from shared.config.settings import settings
from shared.infrastructure import db as db_infra
from ordering_core import __version__

app = typer.Typer(
    name="ordering-core",
    help="Multi-branch ordering core CLI",
    add_completion=False,
)
console = Console()

# The CLI acts with full rights on every branch
CLI_PRINCIPAL_ROLE = "ADMIN"


@app.callback()
def main():
    """Configure logging for every command."""
    setup_logging()
    for error in settings.validate_production_settings():
        console.print(f"[yellow]⚠ {error}[/yellow]")


def _cli_principal():
    from ordering_core.services.permissions import Principal

    return Principal(role=CLI_PRINCIPAL_ROLE)


# =============================================================================
# Database Commands
# =============================================================================

@app.command("init-db")
def init_db():
    """Create all tables."""
    from ordering_core.models import Base

    engine = db_infra.get_engine()
    Base.metadata.create_all(engine)
    console.print(f"[green]✓ Tables created ({len(Base.metadata.tables)})[/green]")


@app.command("seed-demo")
def seed_demo():
    """Seed a demo branch with a menu, dishes and ingredients."""
    from ordering_core.models import Branch, Dish, DishIngredient, Ingredient, Menu

    with db_infra.get_db_context() as db:
        existing = db.scalar(select(Branch).where(Branch.address == "Av. Demo 100"))
        if existing is not None:
            console.print(f"[yellow]Demo branch already seeded (id={existing.id})[/yellow]")
            return

        branch = Branch(name="Demo Centro", address="Av. Demo 100", lat=-34.6037, lng=-58.3816)
        menu = Menu(branch=branch, name="Main menu")

        ingredients = {
            name: db.scalar(select(Ingredient).where(Ingredient.name == name)) or Ingredient(name=name)
            for name in ("Dough", "Tomato", "Mozzarella", "Basil", "Beef")
        }

        margherita = Dish(menu=menu, name="Margherita", price_cents=1200)
        margherita.ingredient_links = [
            DishIngredient(ingredient=ingredients["Dough"], required=True),
            DishIngredient(ingredient=ingredients["Tomato"], required=True),
            DishIngredient(ingredient=ingredients["Mozzarella"], required=True),
            DishIngredient(ingredient=ingredients["Basil"], required=False),
        ]
        burger = Dish(menu=menu, name="Burger", price_cents=1500)
        burger.ingredient_links = [
            DishIngredient(ingredient=ingredients["Beef"], required=True),
            DishIngredient(ingredient=ingredients["Tomato"], required=False),
        ]
        water = Dish(menu=menu, name="Still water", price_cents=300)

        db.add_all([branch, menu, margherita, burger, water])
        db_infra.safe_commit(db)

        table = Table(title="Demo data")
        table.add_column("Entity", style="cyan")
        table.add_column("ID", style="green")
        table.add_column("Name")
        table.add_row("Branch", str(branch.id), branch.name)
        for dish in (margherita, burger, water):
            table.add_row("Dish", str(dish.id), dish.name)
        console.print(table)


# =============================================================================
# Availability Commands
# =============================================================================

@app.command()
def menu(
    branch_id: int = typer.Argument(..., help="Branch to show"),
):
    """Show the effective availability of every dish on a branch's menus."""
    from ordering_core.services import ServiceContext
    from ordering_core.services.domain import AvailabilityService
    from ordering_core.services.events import BranchHub, RealtimePropagator
    from shared.utils.exceptions import AppException

    with db_infra.get_db_context() as db:
        ctx = ServiceContext(db=db, propagator=RealtimePropagator(BranchHub()))
        try:
            dishes = AvailabilityService(ctx).list_dish_availability(branch_id, _cli_principal())
        except AppException as e:
            console.print(f"[red]✗ {e.detail}[/red]")
            raise typer.Exit(1)

    table = Table(title=f"Menu of branch {branch_id}")
    table.add_column("Dish", style="cyan")
    table.add_column("Name")
    table.add_column("Price", justify="right")
    table.add_column("Available")
    table.add_column("Blocked by", style="yellow")

    for dish in dishes:
        table.add_row(
            str(dish.dish_id),
            dish.name,
            f"{dish.price_cents / 100:.2f}",
            "[green]yes[/green]" if dish.available else "[red]no[/red]",
            ", ".join(str(i) for i in dish.blocking_ingredient_ids) or "-",
        )
    console.print(table)


# =============================================================================
# Realtime Commands
# =============================================================================

@app.command()
def watch(
    branch_id: int = typer.Argument(..., help="Branch topic to follow"),
    count: int = typer.Option(0, "--count", "-c", help="Stop after N events (0 = forever)"),
):
    """Print realtime events published on a branch topic."""
    from shared.infrastructure.events import (
        RealtimeEvent,
        channel_branch,
        close_redis_sync_client,
        get_redis_sync_client,
    )

    topic = channel_branch(branch_id)
    pubsub = get_redis_sync_client().pubsub(ignore_subscribe_messages=True)
    pubsub.subscribe(topic)
    console.print(f"[blue]Listening on {topic} (Ctrl+C to stop)[/blue]")

    received = 0
    try:
        for message in pubsub.listen():
            if message.get("type") != "message":
                continue
            try:
                event = RealtimeEvent.from_json(message["data"], branch_id)
            except (ValueError, KeyError) as e:
                console.print(f"[red]✗ Malformed event: {e}[/red]")
                continue

            console.print(f"[cyan]{event.name}[/cyan] {event.payload}")
            received += 1
            if count and received >= count:
                break
    except KeyboardInterrupt:
        pass
    finally:
        pubsub.close()
        close_redis_sync_client()


@app.command()
def version():
    """Show version information."""
    table = Table(title="Ordering Core Version")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")

    table.add_row("Core", __version__)
    table.add_row("Python", sys.version.split()[0])

    console.print(table)


if __name__ == "__main__":
    app()
