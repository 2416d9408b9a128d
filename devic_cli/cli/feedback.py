from typing import Any, Dict, Optional

import typer

from devic_cli.cli.helpers import read_json_object, run_action
from devic_cli.errors import DevicCliError

app = typer.Typer(help="Submit and view feedback", no_args_is_help=True)


def build_feedback(
    message_id: Optional[str],
    positive: bool,
    negative: bool,
    comment: Optional[str],
    from_json: Optional[str],
) -> Dict[str, Any]:
    if positive and negative:
        raise DevicCliError("Use only one of --positive / --negative", "INVALID_INPUT")

    if from_json:
        data = read_json_object(from_json)
        if not data.get("messageId") and message_id:
            data["messageId"] = message_id
    else:
        data = {"messageId": message_id}
        if positive:
            data["feedback"] = True
        if negative:
            data["feedback"] = False
        if comment:
            data["feedbackComment"] = comment

    if not data.get("messageId"):
        raise DevicCliError("A message ID is required (--message-id or in --from-json)", "INVALID_INPUT")
    return data


@app.command("submit-chat")
def submit_chat(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Assistant identifier"),
    chat_uid: str = typer.Argument(..., help="Chat UID"),
    message_id: Optional[str] = typer.Option(None, "--message-id", help="Message UID to give feedback on"),
    positive: bool = typer.Option(False, "--positive", help="Positive feedback (thumbs up)"),
    negative: bool = typer.Option(False, "--negative", help="Negative feedback (thumbs down)"),
    comment: Optional[str] = typer.Option(None, "--comment", help="Feedback comment"),
    from_json: Optional[str] = typer.Option(None, "--from-json", help="Read full feedback from a JSON file (- for stdin)"),
) -> None:
    """Submit feedback for a chat message."""

    async def action(client):
        data = build_feedback(message_id, positive, negative, comment, from_json)
        return await client.submit_chat_feedback(identifier, chat_uid, data)

    run_action(ctx, action)


@app.command("list-chat")
def list_chat(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Assistant identifier"),
    chat_uid: str = typer.Argument(..., help="Chat UID"),
) -> None:
    """List feedback for a chat."""
    run_action(ctx, lambda client: client.get_chat_feedback(identifier, chat_uid))


@app.command("submit-thread")
def submit_thread(
    ctx: typer.Context,
    thread_id: str = typer.Argument(..., help="Thread ID"),
    message_id: Optional[str] = typer.Option(None, "--message-id", help="Message UID to give feedback on"),
    positive: bool = typer.Option(False, "--positive", help="Positive feedback (thumbs up)"),
    negative: bool = typer.Option(False, "--negative", help="Negative feedback (thumbs down)"),
    comment: Optional[str] = typer.Option(None, "--comment", help="Feedback comment"),
    from_json: Optional[str] = typer.Option(None, "--from-json", help="Read full feedback from a JSON file (- for stdin)"),
) -> None:
    """Submit feedback for a thread message."""

    async def action(client):
        data = build_feedback(message_id, positive, negative, comment, from_json)
        return await client.submit_thread_feedback(thread_id, data)

    run_action(ctx, action)


@app.command("list-thread")
def list_thread(ctx: typer.Context, thread_id: str = typer.Argument(..., help="Thread ID")) -> None:
    """List feedback for a thread."""
    run_action(ctx, lambda client: client.get_thread_feedback(thread_id))
