#!/usr/bin/env python
import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from casguard.auth.config import CASConfig, DEFAULT_CONFIG_LOCATIONS
from casguard.auth.exceptions import ConfigurationError, TransportError
from casguard.auth.protocol_client import ProtocolClient
from casguard.auth.session_gateway import SessionGateway

# Set up rich console
console = Console()

# Create typer app
app = typer.Typer(help="casguard CAS client tools")


def _load(config_path: Optional[str]) -> CASConfig:
    try:
        return CASConfig.load_from_file(config_path)
    except FileNotFoundError:
        console.print("[red]No CAS configuration found.[/red]")
        console.print(f"Searched locations: {', '.join(str(p) for p in DEFAULT_CONFIG_LOCATIONS)}")
        raise typer.Exit(1)
    except ConfigurationError as e:
        console.print(f"[red]Invalid CAS configuration:[/red] {e}")
        raise typer.Exit(1)


@app.command("check-config")
def check_config(
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to cas-config.yaml")
):
    """Validate and display the CAS configuration"""
    config = _load(config_path)

    console.print(Panel("[bold]CAS Configuration[/bold]", expand=False))
    table = Table()
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("cas_url", config.cas_url)
    table.add_row("service_url", config.service_url)
    table.add_row("cas_version", config.cas_version)
    table.add_row("validation_url", config.validation_url)
    table.add_row("renew", str(config.renew))
    table.add_row("session_name", config.session_name)
    table.add_row("session_info", str(config.session_info))
    table.add_row("destroy_session", str(config.destroy_session))
    table.add_row("validation_timeout", f"{config.validation_timeout}s")
    table.add_row("is_dev_mode", str(config.is_dev_mode))
    if config.is_dev_mode:
        table.add_row("dev_mode_user", config.dev_mode_user)

    console.print(table)


@app.command("login-url")
def login_url(
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to cas-config.yaml")
):
    """Print the CAS login and logout URLs"""
    config = _load(config_path)
    gateway = SessionGateway(config)
    console.print(f"Login:  {gateway.build_login_url()}")
    console.print(f"Logout: {gateway.build_logout_url()}")


@app.command("validate-ticket")
def validate_ticket(
    ticket: str = typer.Argument(..., help="Service ticket issued by the CAS server"),
    service: Optional[str] = typer.Option(None, "--service", "-s", help="Service URL (defaults to service_url)"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to cas-config.yaml")
):
    """Validate a service ticket against the CAS server"""
    config = _load(config_path)

    async def run():
        client = ProtocolClient(config)
        try:
            return await client.validate(ticket, service or config.service_url)
        finally:
            await client.cleanup()

    try:
        outcome = asyncio.run(run())
    except TransportError as e:
        console.print(f"[red]CAS server unavailable:[/red] {e}")
        raise typer.Exit(2)

    if not outcome.ok:
        console.print(f"[red]{type(outcome.error).__name__}:[/red] {outcome.error}")
        if outcome.description:
            console.print(f"Description: {outcome.description}")
        raise typer.Exit(1)

    console.print(f"[green]Authenticated as[/green] [bold]{outcome.principal}[/bold]")
    if outcome.attributes:
        table = Table(title="Attributes")
        table.add_column("Name", style="cyan")
        table.add_column("Value", style="green")
        for name, value in outcome.attributes.items():
            table.add_row(name, ", ".join(value) if isinstance(value, list) else str(value))
        console.print(table)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: int = typer.Option(8787, "--port", "-p", help="Listen port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes")
):
    """Run the casguard API server"""
    from casguard.run_api import main
    main(host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
