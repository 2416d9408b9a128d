from typing import Any, Dict, List, Optional

import typer

from devic_cli import formatting as md
from devic_cli.cli.helpers import (
    get_state,
    poll_config,
    read_json_input,
    read_json_object,
    run_action,
    split_tags,
)
from devic_cli.errors import DevicCliError
from devic_cli.polling import poll_chat

app = typer.Typer(help="Manage assistants and chats", no_args_is_help=True)
chats_app = typer.Typer(help="Manage chat histories", no_args_is_help=True)
app.add_typer(chats_app, name="chats")

TIMEOUT_HELP = "Give up polling after this many seconds (default: 300)"


def format_assistant_list(items: List[Dict[str, Any]]) -> str:
    if not items:
        return "_No assistants found._"
    rows = [
        {
            "identifier": a.get("identifier"),
            "name": a.get("name"),
            "description": a.get("description") or "-",
            "state": a.get("state") or "active",
            "model": a.get("model") or "-",
        }
        for a in items
    ]
    return "\n".join(
        [
            md.heading(2, "Assistants"),
            "",
            md.table(rows, columns=["identifier", "name", "description", "state", "model"]),
            "",
            md.info(f"{len(items)} assistant(s) found"),
        ]
    )


def format_assistant(a: Dict[str, Any]) -> str:
    state = a.get("state") or "active"
    lines = [
        md.heading(2, f"Assistant: {a.get('name')}"),
        "",
        f"**Identifier:** {md.code(a.get('identifier'))}",
        f"**Description:** {a.get('description') or '-'}",
        f"**State:** {md.status(state)} {state}",
    ]
    if a.get("model"):
        lines.append(f"**Model:** {a['model']}")
    if a.get("provider"):
        lines.append(f"**Provider:** {a['provider']}")
    if a.get("isCustom") is not None:
        lines.append(f"**Custom:** {'Yes' if a['isCustom'] else 'No'}")
    if a.get("creationTimestampMs"):
        lines.append(f"**Created:** {md.format_timestamp(a['creationTimestampMs'])}")

    groups = a.get("availableToolsGroups") or []
    if groups:
        lines.extend(["", md.heading(3, "Tool Groups")])
        for group in groups:
            suffix = f" - {group['description']}" if group.get("description") else ""
            lines.append(f"- **{group.get('name')}**{suffix}")
            for tool in group.get("tools") or []:
                lines.append(f"  - {md.code(tool.get('name'))}: {tool.get('description', '')}")
    return "\n".join(lines)


def format_chat_result(data: Any) -> str:
    if isinstance(data, list):
        # Synchronous mode returns the new messages only
        return "\n".join([md.heading(2, "Chat Response"), "", md.conversation(data)])

    state = data.get("status")
    lines = [
        md.heading(2, "Chat Result"),
        "",
        f"**Chat UID:** {md.code(data.get('chatUID'))}",
        f"**Status:** {md.status(state)} {state}",
    ]
    if data.get("handedOffSubThreadId"):
        lines.append(f"**Subthread:** {md.code(data['handedOffSubThreadId'])}")
    pending = data.get("pendingToolCalls") or []
    if pending:
        lines.extend(["", md.heading(3, "Pending Tool Calls")])
        for call in pending:
            fn = call.get("function") or {}
            lines.append(f"- {md.code(call.get('id'))} {fn.get('name')}({fn.get('arguments', '')})")
        lines.extend(["", md.info("Answer with `devic assistants tool-response`.")])
    if data.get("chatHistory"):
        lines.extend(["", md.hr(), "", md.conversation(data["chatHistory"])])
    return "\n".join(lines)


def format_chat_history(h: Dict[str, Any]) -> str:
    lines = [
        md.heading(2, f"Chat: {h.get('name') or h.get('chatUID')}"),
        "",
        f"**Chat UID:** {md.code(h.get('chatUID'))}",
        f"**Assistant:** {md.code(h.get('assistantSpecializationIdentifier'))}",
        f"**Created:** {md.format_timestamp(h.get('creationTimestampMs'))}",
    ]
    if h.get("llm"):
        lines.append(f"**Model:** {h['llm']}")
    if h.get("inputTokens") is not None:
        lines.append(f"**Tokens:** {h['inputTokens']} in / {h.get('outputTokens') or 0} out")
    if h.get("handedOff"):
        lines.append(f"**Handed Off:** Yes (thread: {md.code(h.get('handedOffSubThreadId') or '?')})")
    if h.get("chatContent"):
        lines.extend(["", md.hr(), "", md.conversation(h["chatContent"])])
    return "\n".join(lines)


def _chat_rows(data: Any, with_assistant: bool = False) -> List[Dict[str, Any]]:
    items = data if isinstance(data, list) else data.get("histories") or data.get("chats") or []
    rows = []
    for c in items:
        row = {"chatUID": c.get("chatUID") or c.get("chatUid")}
        if with_assistant:
            row["assistant"] = c.get("assistantSpecializationIdentifier") or "-"
        row["name"] = c.get("name") or "-"
        row["created"] = (
            md.format_timestamp(c["creationTimestampMs"])
            if c.get("creationTimestampMs")
            else c.get("createdAt") or "-"
        )
        rows.append(row)
    return rows


def _format_chat_list(title: str, empty: str, with_assistant: bool = False):
    def render(data: Any) -> str:
        rows = _chat_rows(data, with_assistant)
        if not rows:
            return empty
        lines = [md.heading(2, title), "", md.table(rows)]
        if isinstance(data, dict) and data.get("total") is not None:
            lines.append(md.pagination(data))
        return "\n".join(lines)

    return render


def _tool_responses(payload: Any) -> List[Dict[str, Any]]:
    responses = payload.get("responses") if isinstance(payload, dict) else payload
    if not isinstance(responses, list) or not responses:
        raise DevicCliError(
            "Expected a list of tool responses (or an object with a 'responses' list)",
            "INVALID_INPUT",
        )
    normalized = []
    for item in responses:
        if not isinstance(item, dict) or not item.get("tool_call_id"):
            raise DevicCliError("Every tool response needs a 'tool_call_id'", "INVALID_INPUT")
        normalized.append({"role": "tool", **item})
    return normalized


@app.command("list")
def list_assistants(
    ctx: typer.Context,
    external: bool = typer.Option(False, "--external", help="Only show externally accessible assistants"),
) -> None:
    """List all assistant specializations."""
    run_action(ctx, lambda client: client.get_assistants(external), format_assistant_list)


@app.command()
def get(ctx: typer.Context, identifier: str = typer.Argument(..., help="Assistant identifier")) -> None:
    """Get details of a specific assistant."""
    run_action(ctx, lambda client: client.get_assistant(identifier), format_assistant)


@app.command()
def chat(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Assistant identifier"),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Message to send"),
    chat_uid: Optional[str] = typer.Option(None, "--chat-uid", help="Continue an existing conversation"),
    provider: Optional[str] = typer.Option(None, "--provider", help="LLM provider override"),
    model: Optional[str] = typer.Option(None, "--model", help="Model override"),
    tags: Optional[str] = typer.Option(None, "--tags", help="Comma-separated tags"),
    wait: bool = typer.Option(
        True,
        "--wait/--no-wait",
        help="Send asynchronously and poll for the result, or block on a synchronous request",
    ),
    from_json: Optional[str] = typer.Option(
        None, "--from-json", help="Read the full message payload from a JSON file (- for stdin)"
    ),
    timeout: Optional[float] = typer.Option(None, "--timeout", help=TIMEOUT_HELP),
) -> None:
    """Send a message to an assistant."""
    renderer = get_state(ctx).renderer
    async def action(client):
        config = poll_config("chat", timeout)
        if from_json:
            dto = read_json_object(from_json)
            if not dto.get("message") and message:
                dto["message"] = message
        else:
            dto = {"message": message}
            if chat_uid:
                dto["chatUid"] = chat_uid
            if provider:
                dto["provider"] = provider
            if model:
                dto["model"] = model
            if tags:
                dto["tags"] = split_tags(tags)
        if not dto.get("message"):
            raise DevicCliError("A message is required (--message or in --from-json)", "INVALID_INPUT")

        if not wait:
            return await client.send_message(identifier, dto)

        accepted = await client.send_message_async(identifier, dto)
        result = await poll_chat(
            client, identifier, accepted.chat_uid, config=config, sink=renderer.status_line
        )
        return result.snapshot

    run_action(ctx, action, format_chat_result)


@app.command()
def wait(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Assistant identifier"),
    chat_uid: str = typer.Argument(..., help="Chat UID to watch"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help=TIMEOUT_HELP),
) -> None:
    """Poll an existing async chat until it completes or needs input."""
    renderer = get_state(ctx).renderer
    async def action(client):
        config = poll_config("chat", timeout)
        result = await poll_chat(client, identifier, chat_uid, config=config, sink=renderer.status_line)
        return result.snapshot

    run_action(ctx, action, format_chat_result)


@app.command("tool-response")
def tool_response(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Assistant identifier"),
    chat_uid: str = typer.Argument(..., help="Chat UID waiting for tool output"),
    from_json: str = typer.Option(
        ..., "--from-json", help="Tool responses as a JSON list or {responses: [...]} (- for stdin)"
    ),
    wait: bool = typer.Option(True, "--wait/--no-wait", help="Poll the chat after submitting"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help=TIMEOUT_HELP),
) -> None:
    """Submit tool call results to a chat waiting for them."""
    renderer = get_state(ctx).renderer
    async def action(client):
        config = poll_config("chat", timeout)
        responses = _tool_responses(read_json_input(from_json))
        accepted = await client.send_tool_responses(identifier, chat_uid, responses)
        if not wait:
            return accepted
        result = await poll_chat(client, identifier, chat_uid, config=config, sink=renderer.status_line)
        return result.snapshot

    run_action(ctx, action, format_chat_result if wait else None)


@app.command()
def stop(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Assistant identifier"),
    chat_uid: str = typer.Argument(..., help="Chat UID to stop"),
) -> None:
    """Stop an in-progress async chat."""
    run_action(
        ctx,
        lambda client: client.stop_chat(identifier, chat_uid),
        lambda r: md.success(f"Chat {md.code(r.get('chatUid', chat_uid))} stopped. {r.get('message', '')}".rstrip()),
    )


@chats_app.command("list")
def list_chats(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Assistant identifier"),
    offset: int = typer.Option(0, "--offset", help="Number of items to skip"),
    limit: int = typer.Option(10, "--limit", help="Maximum items to return"),
    omit_content: bool = typer.Option(False, "--omit-content", help="Exclude chat content"),
) -> None:
    """List chat histories for an assistant."""
    run_action(
        ctx,
        lambda client: client.list_conversations(identifier, offset, limit, omit_content),
        _format_chat_list("Chat Histories", "_No chats found._"),
    )


@chats_app.command("get")
def get_chat(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Assistant identifier"),
    chat_uid: str = typer.Argument(..., help="Chat UID"),
) -> None:
    """Get a specific chat history."""
    run_action(ctx, lambda client: client.get_chat_history(identifier, chat_uid), format_chat_history)


@chats_app.command()
def search(
    ctx: typer.Context,
    assistant: Optional[str] = typer.Option(None, "--assistant", help="Filter by assistant"),
    tags: Optional[str] = typer.Option(None, "--tags", help="Comma-separated tags filter"),
    start_date: Optional[str] = typer.Option(None, "--start-date", help="Start date (ISO string)"),
    end_date: Optional[str] = typer.Option(None, "--end-date", help="End date (ISO string)"),
    omit_content: bool = typer.Option(False, "--omit-content", help="Exclude chat content"),
    from_json: Optional[str] = typer.Option(None, "--from-json", help="Read filters from a JSON file (- for stdin)"),
    offset: int = typer.Option(0, "--offset", help="Number of items to skip"),
    limit: int = typer.Option(10, "--limit", help="Maximum items to return"),
) -> None:
    """Search chat histories across all assistants."""

    async def action(client):
        if from_json:
            filters = read_json_object(from_json)
        else:
            filters = {}
            if assistant:
                filters["assistantIdentifier"] = assistant
            if tags:
                filters["tags"] = split_tags(tags)
            if start_date:
                filters["startDate"] = start_date
            if end_date:
                filters["endDate"] = end_date
        return await client.search_chats(filters, offset, limit, omit_content)

    run_action(
        ctx,
        action,
        _format_chat_list("Search Results", "_No chats found matching filters._", with_assistant=True),
    )
