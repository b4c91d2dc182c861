#!/usr/bin/env python3
"""Admin CLI for the DevDaily catalog.

Walk products through the review workflow and inspect their audit trail
without going through the web admin.
"""

import time
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from src.devdaily.core.exceptions import DomainError, StoreError, public_message
from src.devdaily.core.services.catalog.product_workflow import (
    ProductWorkflowService,
    build_product_workflow,
)
from src.devdaily.core.services.database.db_session import DbSessionService
from src.devdaily.entities.catalog.product import Product
from src.devdaily.runtime.app_startup import configure_logging
from src.devdaily.runtime.context import get_config
from src.devdaily.runtime.init_db import init_db

# Initialize Rich console for colored output
console = Console()

app = typer.Typer(
    name="devdaily",
    help="DevDaily catalog admin CLI - Manage the product review workflow",
    rich_markup_mode="rich",
)
product_app = typer.Typer(help="📦 Product workflow commands")
app.add_typer(product_app, name="product")

ActorOption = typer.Option(1, "--actor", "-a", help="Admin id recorded in the audit log")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to the console")) -> None:
    if verbose:
        configure_logging()


@contextmanager
def workflow() -> Iterator[ProductWorkflowService]:
    """Yield a workflow service and turn catalog errors into exit code 1."""
    session = DbSessionService().get_session()
    try:
        yield build_product_workflow(session)
    except (DomainError, StoreError) as e:
        console.print(f"[red]❌ {public_message(e, get_config().app.environment)}[/red]")
        raise typer.Exit(1) from e
    finally:
        session.close()


def print_product(product: Product, title: str = "Product") -> None:
    table = Table(show_header=False, box=None)
    table.add_column(style="cyan")
    table.add_column()
    table.add_row("ID", str(product.id))
    table.add_row("Name", product.name)
    table.add_row("Slug", product.slug)
    table.add_row("Status", product.status.label)
    table.add_row("Market price", f"{product.market_price:.2f}")
    table.add_row("Verified", _fmt(product.verified_at))
    table.add_row("Published", _fmt(product.published_at))
    table.add_row("Archived", _fmt(product.soft_delete.deleted_at))
    table.add_row("Updated", _fmt(product.updated_at))
    console.print(Panel(table, title=title, border_style="blue"))


def _fmt(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "-"


@app.command("init-db")
def init_db_command(
    reset: bool = typer.Option(False, "--reset", help="Drop all tables first"),
) -> None:
    """Create the catalog tables."""
    if reset:
        typer.confirm("This drops every catalog table. Continue?", abort=True)
    init_db(reset=reset)
    console.print("[green]✓[/green] Database initialized")


@product_app.command("create")
def create_product(
    name: str = typer.Argument(..., help="Product name"),
    slug: str = typer.Option(..., "--slug", "-s", help="Unique URL slug"),
    price: str = typer.Option("0", "--price", "-p", help="Market price"),
    description: str | None = typer.Option(None, "--description", "-d"),
    actor: int = ActorOption,
) -> None:
    """Create a draft product."""
    with workflow() as service:
        product = service.create(
            name, slug, actor_id=actor, market_price=price, description=description
        )
    print_product(product, title="Created")


@product_app.command("show")
def show_product(product_id: int = typer.Argument(..., help="Product id")) -> None:
    with workflow() as service:
        product = service.get(product_id)
    print_product(product)


@product_app.command("transitions")
def show_transitions(product_id: int = typer.Argument(..., help="Product id")) -> None:
    """List the statuses the product can move to."""
    with workflow() as service:
        targets = service.allowed_transitions(product_id)
    if not targets:
        console.print("[yellow]No transitions available[/yellow]")
        return
    for target in targets:
        console.print(f"  → {target.label} [dim]({target.value})[/dim]")


@product_app.command("request-verification")
def request_verification(product_id: int, actor: int = ActorOption) -> None:
    with workflow() as service:
        print_product(service.request_verification(product_id, actor))


@product_app.command("verify")
def verify(
    product_id: int,
    actor: int = ActorOption,
    notes: str | None = typer.Option(None, "--notes", "-n"),
) -> None:
    with workflow() as service:
        print_product(service.verify(product_id, actor, notes=notes))


@product_app.command("publish")
def publish(product_id: int, actor: int = ActorOption) -> None:
    with workflow() as service:
        print_product(service.publish(product_id, actor))


@product_app.command("archive")
def archive(
    product_id: int,
    actor: int = ActorOption,
    reason: str | None = typer.Option(None, "--reason", "-r"),
) -> None:
    with workflow() as service:
        print_product(service.archive(product_id, actor, reason=reason))


@product_app.command("restore")
def restore(
    product_id: int,
    actor: int = ActorOption,
    published: bool = typer.Option(
        False, "--published", help="Restore straight to published instead of draft"
    ),
) -> None:
    with workflow() as service:
        if published:
            product = service.restore_to_published(product_id, actor)
        else:
            product = service.restore(product_id, actor)
    print_product(product)


@product_app.command("history")
def history(
    product_id: int,
    limit: int = typer.Option(50, "--limit", "-l"),
) -> None:
    """Show the audit trail of a product."""
    with workflow() as service:
        entries = service.history(product_id, limit=limit)

    table = Table(title=f"Audit trail for product {product_id}")
    table.add_column("When", style="cyan")
    table.add_column("Action", style="bold")
    table.add_column("Admin")
    table.add_column("Changes")
    table.add_column("Notes")
    for entry in entries:
        table.add_row(
            _fmt(entry.performed_at),
            entry.action_type,
            str(entry.admin_id or "-"),
            entry.changes_summary or "",
            entry.notes or "",
        )
    console.print(table)


@product_app.command("smoke-flow")
def smoke_flow(actor: int = ActorOption, verifier: int = typer.Option(2, "--verifier")) -> None:
    """Create a product and walk it from draft to published."""
    console.print("[yellow]🚀 Running product flow smoke test...[/yellow]")
    stamp = int(time.time())

    with workflow() as service:
        started = time.perf_counter()
        product = service.create(
            f"Smoke Test Product {stamp}",
            f"smoke-test-product-{stamp}",
            actor_id=actor,
            market_price=Decimal("50000"),
            description="Created by the smoke-flow command",
        )
        console.print(f"[green]✓[/green] Created product {product.id}")

        steps = [
            ("request verification", lambda: service.request_verification(product.id, actor)),
            ("verify", lambda: service.verify(product.id, verifier)),
            ("publish", lambda: service.publish(product.id, actor)),
        ]
        for label, step in steps:
            product = step()
            console.print(f"[green]✓[/green] {label} → {product.status.label}")

        elapsed = time.perf_counter() - started
        audit_rows = len(service.history(product.id))

    print_product(product, title="Smoke flow result")
    console.print(f"⏱️ Execution time: {elapsed:.4f}s, audit rows: {audit_rows}")


if __name__ == "__main__":
    app()
