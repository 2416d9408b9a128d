"""Shared plumbing for CLI commands: client creation, input, error mapping."""

import asyncio
import json
import sys
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import typer
from loguru import logger
from pydantic import ValidationError

from devic_cli.client import DevicApiClient
from devic_cli.config import load_config
from devic_cli.errors import DevicApiError, DevicCliError, ExitCode
from devic_cli.models import PollConfig
from devic_cli.output import OutputRenderer
from devic_cli.policies import get_policy

INTERRUPTED_EXIT_CODE = 130


@dataclass
class CliState:
    renderer: OutputRenderer
    base_url: Optional[str] = None


def get_state(ctx: typer.Context) -> CliState:
    state = ctx.obj
    if state is None:
        # Subcommand invoked without the root callback (e.g. in isolation)
        state = ctx.obj = CliState(renderer=OutputRenderer())
    return state


def create_client(base_url: Optional[str] = None) -> DevicApiClient:
    """Create an authenticated API client from stored config and env."""
    config = load_config(base_url)
    if not config.api_key:
        raise DevicCliError(
            "Not authenticated. Run `devic auth login --api-key <key>` or set DEVIC_API_KEY.",
            "AUTH_REQUIRED",
            ExitCode.AUTH_REQUIRED,
        )
    return DevicApiClient(config.api_key, config.base_url)


def read_json_input(path: str) -> Any:
    """Read JSON from a file path, or from stdin when path is ``-``."""
    try:
        if path == "-":
            text = sys.stdin.read()
        else:
            with open(path, encoding="utf-8") as f:
                text = f.read()
        return json.loads(text)
    except OSError as e:
        raise DevicCliError(f"Cannot read {path}: {e}", "INVALID_INPUT") from e
    except json.JSONDecodeError as e:
        raise DevicCliError(f"Invalid JSON in {path}: {e}", "INVALID_INPUT") from e


def read_json_object(path: str) -> Dict[str, Any]:
    data = read_json_input(path)
    if not isinstance(data, dict):
        raise DevicCliError(f"Expected a JSON object in {path}", "INVALID_INPUT")
    return data


def split_tags(tags: Optional[str]) -> Optional[List[str]]:
    if not tags:
        return None
    return [t.strip() for t in tags.split(",") if t.strip()]


def poll_config(kind: str, timeout: Optional[float]) -> PollConfig:
    """The kind's default poll config, optionally with a timeout in seconds."""
    defaults = get_policy(kind).defaults
    if timeout is None:
        return defaults
    try:
        return defaults.with_overrides(timeout_ms=int(timeout * 1000))
    except ValidationError as e:
        raise DevicCliError(
            f"Invalid --timeout {timeout}: must be zero or more seconds", "INVALID_INPUT"
        ) from e


def run_command(
    ctx: typer.Context,
    action: Callable[[], Awaitable[Any]],
    human_fn: Optional[Callable[[Any], str]] = None,
) -> None:
    """Run a coroutine-producing action and render its result.

    Errors are rendered on stderr and mapped to the process exit code.
    """
    renderer = get_state(ctx).renderer
    try:
        result = asyncio.run(action())
    except DevicApiError as e:
        renderer.error(e.to_dict())
        raise typer.Exit(ExitCode.AUTH_REQUIRED if e.status_code == 401 else ExitCode.ERROR)
    except DevicCliError as e:
        renderer.error(e.to_dict())
        raise typer.Exit(e.exit_code)
    except KeyboardInterrupt:
        renderer.error({"error": "Interrupted", "code": "INTERRUPTED"})
        raise typer.Exit(INTERRUPTED_EXIT_CODE)
    except Exception as e:
        logger.opt(exception=e).debug("Unhandled error in command")
        renderer.error({"error": str(e) or type(e).__name__, "code": "UNKNOWN_ERROR"})
        raise typer.Exit(ExitCode.ERROR)

    if result is not None:
        renderer.output(result, human_fn)


def run_action(
    ctx: typer.Context,
    action: Callable[[DevicApiClient], Awaitable[Any]],
    human_fn: Optional[Callable[[Any], str]] = None,
) -> None:
    """Like run_command, but hands the action an authenticated client."""
    base_url = get_state(ctx).base_url

    async def _with_client():
        async with create_client(base_url) as client:
            return await action(client)

    run_command(ctx, _with_client, human_fn)
