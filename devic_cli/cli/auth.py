from typing import Optional

import typer

from devic_cli.cli.helpers import get_state, run_command
from devic_cli.client import DEFAULT_BASE_URL, DevicApiClient
from devic_cli.config import delete_config, load_config, save_config

app = typer.Typer(help="Manage authentication", no_args_is_help=True)


@app.command()
def login(
    ctx: typer.Context,
    api_key: str = typer.Option(..., "--api-key", help="Devic API key (devic-xxx)"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Override API base URL"),
) -> None:
    """Authenticate with the Devic API."""
    renderer = get_state(ctx).renderer
    resolved_url = base_url or get_state(ctx).base_url or DEFAULT_BASE_URL

    async def action():
        # Validate the key before storing it
        async with DevicApiClient(api_key, resolved_url) as client:
            await client.get_assistants()
        save_config(api_key=api_key, base_url=base_url)
        if renderer.is_human:
            renderer.message("Authenticated successfully.")
            return None
        return {"status": "authenticated", "baseUrl": resolved_url}

    run_command(ctx, action)


@app.command()
def status(ctx: typer.Context) -> None:
    """Show current authentication status."""
    base_url = get_state(ctx).base_url

    async def action():
        config = load_config(base_url)
        result = {"authenticated": bool(config.api_key), "baseUrl": config.base_url}
        if config.api_key:
            result["apiKey"] = f"{config.api_key[:10]}..."
        return result

    def human(s):
        if not s["authenticated"]:
            return "Not authenticated. Run `devic auth login --api-key <key>`."
        return f"Authenticated\n  API Key: {s['apiKey']}\n  Base URL: {s['baseUrl']}"

    run_command(ctx, action, human)


@app.command()
def logout(ctx: typer.Context) -> None:
    """Remove stored credentials."""
    renderer = get_state(ctx).renderer

    async def action():
        delete_config()
        if renderer.is_human:
            renderer.message("Logged out.")
            return None
        return {"status": "logged_out"}

    run_command(ctx, action)
