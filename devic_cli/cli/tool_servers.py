from typing import Optional

import typer

from devic_cli.cli.helpers import read_json_object, run_action

app = typer.Typer(help="Manage tool servers and tools", no_args_is_help=True)
tools_app = typer.Typer(help="Manage tools within a tool server", no_args_is_help=True)
app.add_typer(tools_app, name="tools")


@app.command("list")
def list_tool_servers(
    ctx: typer.Context,
    offset: int = typer.Option(0, "--offset", help="Number of items to skip"),
    limit: int = typer.Option(10, "--limit", help="Maximum items to return"),
) -> None:
    """List all tool servers."""
    run_action(ctx, lambda client: client.list_tool_servers(offset, limit))


@app.command()
def get(ctx: typer.Context, tool_server_id: str = typer.Argument(..., help="Tool server ID")) -> None:
    """Get tool server details."""
    run_action(ctx, lambda client: client.get_tool_server(tool_server_id))


@app.command()
def create(
    ctx: typer.Context,
    name: Optional[str] = typer.Option(None, "--name", help="Tool server name"),
    url: Optional[str] = typer.Option(None, "--url", help="Base URL"),
    description: Optional[str] = typer.Option(None, "--description", help="Description"),
    from_json: Optional[str] = typer.Option(None, "--from-json", help="Read config from a JSON file (- for stdin)"),
) -> None:
    """Create a new tool server."""

    async def action(client):
        if from_json:
            data = read_json_object(from_json)
        else:
            data = {k: v for k, v in (("name", name), ("url", url), ("description", description)) if v}
        return await client.create_tool_server(data)

    run_action(ctx, action)


@app.command()
def update(
    ctx: typer.Context,
    tool_server_id: str = typer.Argument(..., help="Tool server ID"),
    name: Optional[str] = typer.Option(None, "--name", help="Tool server name"),
    url: Optional[str] = typer.Option(None, "--url", help="Base URL"),
    description: Optional[str] = typer.Option(None, "--description", help="Description"),
    enabled: Optional[bool] = typer.Option(None, "--enabled/--disabled", help="Enable or disable the server"),
    from_json: Optional[str] = typer.Option(
        None, "--from-json", help="Read the update payload from a JSON file (- for stdin)"
    ),
) -> None:
    """Update a tool server."""

    async def action(client):
        if from_json:
            data = read_json_object(from_json)
        else:
            data = {k: v for k, v in (("name", name), ("url", url), ("description", description)) if v}
            if enabled is not None:
                data["enabled"] = enabled
        return await client.update_tool_server(tool_server_id, data)

    run_action(ctx, action)


@app.command()
def delete(ctx: typer.Context, tool_server_id: str = typer.Argument(..., help="Tool server ID")) -> None:
    """Delete a tool server."""
    run_action(ctx, lambda client: client.delete_tool_server(tool_server_id))


@app.command()
def clone(ctx: typer.Context, tool_server_id: str = typer.Argument(..., help="Tool server ID")) -> None:
    """Clone a tool server."""
    run_action(ctx, lambda client: client.clone_tool_server(tool_server_id))


@app.command()
def definition(ctx: typer.Context, tool_server_id: str = typer.Argument(..., help="Tool server ID")) -> None:
    """Get tool server definition."""
    run_action(ctx, lambda client: client.get_tool_server_definition(tool_server_id))


@app.command("update-definition")
def update_definition(
    ctx: typer.Context,
    tool_server_id: str = typer.Argument(..., help="Tool server ID"),
    from_json: str = typer.Option(..., "--from-json", help="Read the definition from a JSON file (- for stdin)"),
) -> None:
    """Update tool server definition."""

    async def action(client):
        return await client.update_tool_server_definition(tool_server_id, read_json_object(from_json))

    run_action(ctx, action)


@tools_app.command("list")
def list_tools(ctx: typer.Context, tool_server_id: str = typer.Argument(..., help="Tool server ID")) -> None:
    """List tools in a tool server."""
    run_action(ctx, lambda client: client.list_tools(tool_server_id))


@tools_app.command("get")
def get_tool(
    ctx: typer.Context,
    tool_server_id: str = typer.Argument(..., help="Tool server ID"),
    tool_name: str = typer.Argument(..., help="Tool name"),
) -> None:
    """Get a specific tool definition."""
    run_action(ctx, lambda client: client.get_tool(tool_server_id, tool_name))


@tools_app.command("add")
def add_tool(
    ctx: typer.Context,
    tool_server_id: str = typer.Argument(..., help="Tool server ID"),
    from_json: str = typer.Option(..., "--from-json", help="Read the tool definition from a JSON file (- for stdin)"),
) -> None:
    """Add a tool to a tool server."""

    async def action(client):
        return await client.add_tool(tool_server_id, read_json_object(from_json))

    run_action(ctx, action)


@tools_app.command("update")
def update_tool(
    ctx: typer.Context,
    tool_server_id: str = typer.Argument(..., help="Tool server ID"),
    tool_name: str = typer.Argument(..., help="Tool name"),
    from_json: str = typer.Option(..., "--from-json", help="Read the update payload from a JSON file (- for stdin)"),
) -> None:
    """Update a tool definition."""

    async def action(client):
        return await client.update_tool(tool_server_id, tool_name, read_json_object(from_json))

    run_action(ctx, action)


@tools_app.command("delete")
def delete_tool(
    ctx: typer.Context,
    tool_server_id: str = typer.Argument(..., help="Tool server ID"),
    tool_name: str = typer.Argument(..., help="Tool name"),
) -> None:
    """Delete a tool from a tool server."""
    run_action(ctx, lambda client: client.delete_tool(tool_server_id, tool_name))


@tools_app.command("test")
def run_tool_test(
    ctx: typer.Context,
    tool_server_id: str = typer.Argument(..., help="Tool server ID"),
    tool_name: str = typer.Argument(..., help="Tool name"),
    from_json: str = typer.Option(..., "--from-json", help="Read test parameters from a JSON file (- for stdin)"),
) -> None:
    """Test a tool call with parameters."""

    async def action(client):
        return await client.test_tool(tool_server_id, tool_name, read_json_object(from_json))

    run_action(ctx, action)
