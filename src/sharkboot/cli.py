"""Typer CLI for SharkBoot."""

import asyncio

import typer
from rich.console import Console

app = typer.Typer(name="sharkboot", help="SharkBoot: assistants over WhatsApp, per tenant")
console = Console()


@app.command()
def serve(
    host: str = typer.Option(None, help="Bind host (default from settings)"),
    port: int = typer.Option(None, help="Bind port (default from settings)"),
):
    """Start the SharkBoot API server."""
    import uvicorn
    from sharkboot.app import create_app
    from sharkboot.common.config import get_settings

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port
    console.print(f"[bold green]Starting SharkBoot on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command("init-db")
def init_db():
    """Create all tables in the configured database."""
    from sharkboot.common.config import get_settings
    from sharkboot.common.database import DatabaseManager

    async def _run():
        db = DatabaseManager(get_settings())
        await db.init()
        try:
            await db.create_all()
        finally:
            await db.close()

    asyncio.run(_run())
    console.print("[bold green]Database initialized[/bold green]")


@app.command()
def token(
    user_id: str = typer.Argument(..., help="User id to issue a bearer token for"),
):
    """Issue a bearer token for an existing user (operator use)."""
    from sharkboot.common.config import get_settings
    from sharkboot.common.database import DatabaseManager
    from sharkboot.common.security import Principal, issue_token
    from sharkboot.tenants.models import UserModel

    settings = get_settings()

    async def _run():
        db = DatabaseManager(settings)
        await db.init()
        try:
            async with db.get_session() as session:
                return await session.get(UserModel, user_id)
        finally:
            await db.close()

    user = asyncio.run(_run())
    if user is None:
        console.print(f"[bold red]Unknown user:[/bold red] {user_id}")
        raise typer.Exit(1)
    principal = Principal(user_id=user.id, client_id=user.client_id, name=user.name)
    console.print(issue_token(principal, secret_key=settings.secret_key))


@app.command("set-plan")
def set_plan(
    client_id: str = typer.Argument(..., help="Client (tenant) id"),
    plan: str = typer.Argument(..., help="FREE, STARTER, PRO or ENTERPRISE"),
):
    """Change a tenant's plan."""
    from sharkboot.common.config import get_settings
    from sharkboot.common.database import DatabaseManager
    from sharkboot.common.exceptions import SharkbootError
    from sharkboot.tenants.service import TenantService

    settings = get_settings()

    async def _run():
        db = DatabaseManager(settings)
        await db.init()
        try:
            async with db.get_session() as session:
                client = await TenantService(settings).set_plan(session, client_id, plan)
                return client.plan, settings.plan_limit(client.plan)
        finally:
            await db.close()

    try:
        new_plan, limit = asyncio.run(_run())
    except SharkbootError as e:
        console.print(f"[bold red]{e.code}[/bold red]: {e.message}")
        raise typer.Exit(1)
    console.print(f"[bold green]{client_id}[/bold green] is now on {new_plan} ({limit} WhatsApp numbers)")


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check SharkBoot server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green]: v{data['version']}")
    except (httpx.HTTPError, ValueError, KeyError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
