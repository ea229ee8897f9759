"""Typer CLI for Nexus checkout."""

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="nexus", help="Nexus checkout: signup, payment and account provisioning")
console = Console()


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(8080, help="Bind port"),
    log_level: str = typer.Option("INFO", help="Log level"),
):
    """Start the Nexus checkout API server."""
    import uvicorn
    from nexus_checkout.app import create_app
    from nexus_checkout.common.logging import setup_logging

    setup_logging(log_level)
    console.print(f"[bold green]Starting Nexus checkout on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check Nexus checkout server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] — v{data['version']}")
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def reconcile(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
    admin_key: str = typer.Option(..., envvar="NEXUS_ADMIN_API_KEY", help="Admin API key"),
    limit: int = typer.Option(100, help="Maximum sessions to list"),
):
    """List paid sessions whose identity account exists but provisioning never finished."""
    from nexus_checkout.client import SignupClient

    with SignupClient(server_url=url, admin_key=admin_key, max_retries=1) as client:
        try:
            sessions = client.list_orphaned_sessions(limit=limit)
        except RuntimeError as e:
            console.print(f"[bold red]Error:[/bold red] {e}")
            raise typer.Exit(1)

    if not sessions:
        console.print("[bold green]No orphaned sessions[/bold green]")
        return

    table = Table(title=f"Orphaned sessions ({len(sessions)})")
    for column in ("id", "user_email", "status", "identity_user_id", "paid_at"):
        table.add_column(column)
    for s in sessions:
        table.add_row(
            s["id"], s["user_email"], s["status"],
            s.get("identity_user_id") or "", str(s.get("paid_at") or ""),
        )
    console.print(table)


@app.command("check-document")
def check_document(
    value: str = typer.Argument(..., help="CPF or CNPJ, punctuation allowed"),
):
    """Validate a CPF/CNPJ check-digit offline."""
    from nexus_checkout.common.documents import is_valid_tax_id, only_digits

    digits = only_digits(value)
    kind = {11: "CPF", 14: "CNPJ"}.get(len(digits), "document")
    if is_valid_tax_id(digits):
        console.print(f"[bold green]VALID[/bold green] — {kind} {digits}")
    else:
        console.print(f"[bold red]INVALID[/bold red] — {kind} {digits or value}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
