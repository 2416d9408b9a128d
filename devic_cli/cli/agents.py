from typing import Any, Dict, Optional

import typer

from devic_cli import formatting as md
from devic_cli.cli.helpers import (
    get_state,
    poll_config,
    read_json_object,
    run_action,
    split_tags,
)
from devic_cli.errors import DevicCliError
from devic_cli.polling import poll_thread

app = typer.Typer(help="Manage agents and threads", no_args_is_help=True)
threads_app = typer.Typer(help="Manage agent execution threads", no_args_is_help=True)
costs_app = typer.Typer(help="Agent cost tracking", no_args_is_help=True)
app.add_typer(threads_app, name="threads")
app.add_typer(costs_app, name="costs")

TIMEOUT_HELP = "Give up polling after this many seconds (default: 600)"


def format_agent(a: Dict[str, Any]) -> str:
    lines = [
        md.heading(2, f"Agent: {a.get('name')}"),
        "",
        f"**ID:** {md.code(a.get('_id') or a.get('agentId') or '-')}",
        f"**Name:** {a.get('name')}",
    ]
    if a.get("description"):
        lines.append(f"**Description:** {a['description']}")
    if a.get("provider"):
        lines.append(f"**Provider:** {a['provider']}")
    if a.get("llm"):
        lines.append(f"**LLM:** {a['llm']}")
    for key, label in (("disabled", "Disabled"), ("archived", "Archived")):
        if a.get(key) is not None:
            lines.append(f"**{label}:** {'Yes' if a[key] else 'No'}")
    if a.get("maxExecutionInputTokens"):
        lines.append(f"**Max Input Tokens:** {a['maxExecutionInputTokens']:,}")
    if a.get("maxExecutionToolCalls"):
        lines.append(f"**Max Tool Calls:** {a['maxExecutionToolCalls']}")
    if a.get("creationTimestampMs"):
        lines.append(f"**Created:** {md.format_timestamp(a['creationTimestampMs'])}")
    if a.get("assistantSpecialization"):
        lines.extend(["", md.heading(3, "Specialization"), md.props(a["assistantSpecialization"])])
    return "\n".join(lines)


def format_thread(t: Dict[str, Any]) -> str:
    state = t.get("state")
    lines = [
        md.heading(2, f"Thread: {t.get('name') or t.get('_id') or '-'}"),
        "",
        f"**ID:** {md.code(t.get('_id') or '-')}",
        f"**Agent:** {md.code(t.get('agentId') or '-')}",
        f"**State:** {md.status(state)} {state}",
    ]
    if t.get("finishReason"):
        lines.append(f"**Finish Reason:** {t['finishReason']}")
    if t.get("pausedReason"):
        lines.append(f"**Paused Reason:** {t['pausedReason']}")
    if t.get("creationTimestampMs"):
        lines.append(f"**Created:** {md.format_timestamp(t['creationTimestampMs'])}")
    if t.get("lastEditTimestampMs"):
        lines.append(f"**Updated:** {md.format_timestamp(t['lastEditTimestampMs'])}")
    if t.get("isSubthread"):
        lines.append(f"**Subthread:** Yes (parent: {md.code(t.get('parentThreadId') or '?')})")
    pending = t.get("pendingHandOffSubThreadIds") or []
    if pending:
        lines.append(f"**Pending Subthreads:** {', '.join(md.code(i) for i in pending)}")

    tasks = t.get("tasks") or []
    if tasks:
        lines.extend(["", md.heading(3, "Tasks")])
        for task in tasks:
            check = "[x]" if task.get("completed") else "[ ]"
            lines.append(f"- {check} {task.get('title') or task.get('description') or '(untitled)'}")

    if state == "paused_for_approval":
        lines.extend(["", md.info("Waiting for approval: `devic agents threads approve|reject`.")])
    if t.get("threadContent"):
        lines.extend(["", md.hr(), "", md.conversation(t["threadContent"])])
    return "\n".join(lines)


def format_created_thread(t: Dict[str, Any]) -> str:
    if "threadContent" in t:
        return format_thread(t)
    state = t.get("state") or "queued"
    return "\n".join(
        [
            md.success(f"Thread created: {md.code(t.get('threadId') or t.get('_id') or '-')}"),
            "",
            f"**Agent:** {md.code(t.get('agentId') or '-')}",
            f"**State:** {md.status(state)} {state}",
        ]
    )


def format_agent_list(data: Any) -> str:
    items = data if isinstance(data, list) else data.get("agents") or []
    if not items:
        return "_No agents found._"
    rows = [
        {
            "id": a.get("_id") or a.get("agentId"),
            "name": a.get("name"),
            "description": (a.get("description") or "-")[:50],
            "provider": a.get("provider") or "-",
            "llm": a.get("llm") or "-",
            "disabled": a.get("disabled", False),
        }
        for a in items
    ]
    lines = [md.heading(2, "Agents"), "", md.table(rows)]
    if isinstance(data, dict) and data.get("total") is not None:
        lines.append(md.pagination(data))
    return "\n".join(lines)


def format_thread_list(data: Any) -> str:
    items = data if isinstance(data, list) else data.get("threads") or []
    if not items:
        return "_No threads found._"
    rows = []
    for t in items:
        created = t.get("createdAt") or md.format_timestamp(t.get("creationTimestampMs"))
        rows.append(
            {
                "id": t.get("threadId") or t.get("_id"),
                "state": f"{md.status(t.get('state'))} {t.get('state')}",
                "message": (t.get("message") or t.get("name") or "-")[:40],
                "created": created,
            }
        )
    lines = [md.heading(2, "Threads"), "", md.table(rows)]
    if isinstance(data, dict) and data.get("total") is not None:
        lines.append(md.pagination(data))
    return "\n".join(lines)


def format_evaluation(data: Dict[str, Any]) -> str:
    ev = data.get("evaluation") or data
    lines = [md.heading(2, "Thread Evaluation"), ""]
    if ev.get("overallScore") is not None:
        lines.append(f"**Overall Score:** {ev['overallScore']}/10")
    if ev.get("generalFeedback"):
        lines.append(f"**Feedback:** {ev['generalFeedback']}")
    criteria = ev.get("criteria") or {}
    if criteria:
        lines.extend(["", md.heading(3, "Criteria")])
        for name, crit in criteria.items():
            lines.append(f"- **{name}:** {crit.get('score')}/10 - {crit.get('reasoning', '')}")
    return "\n".join(lines)


def _format_cost_block(title: str, block: Dict[str, Any]) -> list:
    return [
        md.heading(3, title),
        f"**Cost:** ${block.get('totalCost') or 0:.2f}",
        f"**Tokens:** {block.get('inputTokens') or 0} in / {block.get('outputTokens') or 0} out",
        f"**Threads:** {block.get('threadCount') or 0}",
        "",
    ]


def format_cost_summary(data: Dict[str, Any]) -> str:
    lines = [md.heading(2, "Cost Summary"), ""]
    if data.get("today"):
        lines.extend(_format_cost_block("Today", data["today"]))
    if data.get("currentMonth"):
        lines.extend(_format_cost_block("Current Month", data["currentMonth"]))
    return "\n".join(lines).rstrip()


def _agent_payload(name: Optional[str], description: Optional[str], from_json: Optional[str]) -> Dict[str, Any]:
    if from_json:
        return read_json_object(from_json)
    data = {}
    if name:
        data["name"] = name
    if description:
        data["description"] = description
    return data


def _thread_id(created: Any) -> Optional[str]:
    if isinstance(created, dict):
        return created.get("threadId") or created.get("_id")
    return None


@app.command("list")
def list_agents(
    ctx: typer.Context,
    offset: int = typer.Option(0, "--offset", help="Number of items to skip"),
    limit: int = typer.Option(10, "--limit", help="Maximum items to return"),
    archived: bool = typer.Option(False, "--archived", help="Include archived agents"),
) -> None:
    """List all agents."""
    run_action(
        ctx,
        lambda client: client.list_agents(offset, limit, archived or None),
        format_agent_list,
    )


@app.command()
def get(ctx: typer.Context, agent_id: str = typer.Argument(..., help="Agent ID")) -> None:
    """Get agent details."""
    run_action(ctx, lambda client: client.get_agent(agent_id), format_agent)


@app.command()
def create(
    ctx: typer.Context,
    name: Optional[str] = typer.Option(None, "--name", help="Agent name"),
    description: Optional[str] = typer.Option(None, "--description", help="Agent description"),
    from_json: Optional[str] = typer.Option(
        None, "--from-json", help="Read the full agent config from a JSON file (- for stdin)"
    ),
) -> None:
    """Create a new agent."""

    async def action(client):
        return await client.create_agent(_agent_payload(name, description, from_json))

    run_action(
        ctx,
        action,
        lambda a: "\n".join([md.success(f"Agent created: {md.bold(a.get('name'))}"), "", format_agent(a)]),
    )


@app.command()
def update(
    ctx: typer.Context,
    agent_id: str = typer.Argument(..., help="Agent ID"),
    name: Optional[str] = typer.Option(None, "--name", help="Agent name"),
    description: Optional[str] = typer.Option(None, "--description", help="Agent description"),
    from_json: Optional[str] = typer.Option(
        None, "--from-json", help="Read the update payload from a JSON file (- for stdin)"
    ),
) -> None:
    """Update an agent."""

    async def action(client):
        return await client.update_agent(agent_id, _agent_payload(name, description, from_json))

    run_action(
        ctx,
        action,
        lambda a: "\n".join([md.success(f"Agent updated: {md.bold(a.get('name'))}"), "", format_agent(a)]),
    )


@app.command()
def delete(ctx: typer.Context, agent_id: str = typer.Argument(..., help="Agent ID")) -> None:
    """Delete an agent."""
    run_action(
        ctx,
        lambda client: client.delete_agent(agent_id),
        lambda r: md.success((r or {}).get("message") or f"Agent {md.code(agent_id)} deleted."),
    )


@threads_app.command("create")
def create_thread(
    ctx: typer.Context,
    agent_id: str = typer.Argument(..., help="Agent ID"),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Initial message/task"),
    tags: Optional[str] = typer.Option(None, "--tags", help="Comma-separated tags"),
    wait: bool = typer.Option(False, "--wait", help="Poll until the thread finishes or needs approval"),
    from_json: Optional[str] = typer.Option(
        None, "--from-json", help="Read the thread config from a JSON file (- for stdin)"
    ),
    timeout: Optional[float] = typer.Option(None, "--timeout", help=TIMEOUT_HELP),
) -> None:
    """Create a new thread."""
    renderer = get_state(ctx).renderer
    async def action(client):
        config = poll_config("thread", timeout)
        if from_json:
            data = read_json_object(from_json)
            if not data.get("message") and message:
                data["message"] = message
        else:
            data = {"message": message}
            if tags:
                data["tags"] = split_tags(tags)
        if not data.get("message"):
            raise DevicCliError("A message is required (--message or in --from-json)", "INVALID_INPUT")

        created = await client.create_thread(agent_id, data)
        thread_id = _thread_id(created)
        if not wait or not thread_id:
            return created
        result = await poll_thread(client, thread_id, config=config, sink=renderer.status_line)
        return result.snapshot

    run_action(ctx, action, format_created_thread)


@threads_app.command("list")
def list_threads(
    ctx: typer.Context,
    agent_id: str = typer.Argument(..., help="Agent ID"),
    offset: int = typer.Option(0, "--offset", help="Number of items to skip"),
    limit: int = typer.Option(10, "--limit", help="Maximum items to return"),
    state: Optional[str] = typer.Option(None, "--state", help="Filter by thread state"),
    start_date: Optional[str] = typer.Option(None, "--start-date", help="Start date filter"),
    end_date: Optional[str] = typer.Option(None, "--end-date", help="End date filter"),
    date_order: Optional[str] = typer.Option(None, "--date-order", help="Sort by date (asc|desc)"),
    tags: Optional[str] = typer.Option(None, "--tags", help="Comma-separated tags"),
) -> None:
    """List threads for an agent."""
    run_action(
        ctx,
        lambda client: client.list_threads(
            agent_id,
            offset=offset,
            limit=limit,
            state=state,
            start_date=start_date,
            end_date=end_date,
            date_order=date_order,
            tags=tags,
        ),
        format_thread_list,
    )


@threads_app.command("get")
def get_thread(
    ctx: typer.Context,
    thread_id: str = typer.Argument(..., help="Thread ID"),
    with_tasks: bool = typer.Option(False, "--with-tasks", help="Include tasks in response"),
) -> None:
    """Get thread details."""
    run_action(ctx, lambda client: client.get_thread(thread_id, with_tasks), format_thread)


@threads_app.command("wait")
def wait_thread(
    ctx: typer.Context,
    thread_id: str = typer.Argument(..., help="Thread ID"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help=TIMEOUT_HELP),
) -> None:
    """Poll a thread until it finishes or needs approval."""
    renderer = get_state(ctx).renderer
    async def action(client):
        config = poll_config("thread", timeout)
        result = await poll_thread(client, thread_id, config=config, sink=renderer.status_line)
        return result.snapshot

    run_action(ctx, action, format_thread)


def _approval_command(approved: bool):
    verb = "approved" if approved else "rejected"

    def command(
        ctx: typer.Context,
        thread_id: str = typer.Argument(..., help="Thread ID"),
        message: Optional[str] = typer.Option(None, "--message", "-m", help="Message for the agent"),
        wait: bool = typer.Option(False, "--wait", help="Keep polling the thread afterwards"),
        timeout: Optional[float] = typer.Option(None, "--timeout", help=TIMEOUT_HELP),
    ) -> None:
        renderer = get_state(ctx).renderer
        async def action(client):
            config = poll_config("thread", timeout)
            response = await client.handle_approval(thread_id, approved, message)
            if not wait:
                return response
            result = await poll_thread(client, thread_id, config=config, sink=renderer.status_line)
            return result.snapshot

        run_action(ctx, action, format_thread if wait else lambda _: md.success(f"Thread {verb}."))

    command.__doc__ = f"{'Approve' if approved else 'Reject'} a thread waiting for approval."
    return command


threads_app.command("approve")(_approval_command(True))
threads_app.command("reject")(_approval_command(False))


@threads_app.command("pause")
def pause_thread(ctx: typer.Context, thread_id: str = typer.Argument(..., help="Thread ID")) -> None:
    """Pause a running thread."""
    run_action(ctx, lambda client: client.pause_thread(thread_id), lambda _: md.success("Thread paused."))


@threads_app.command("resume")
def resume_thread(ctx: typer.Context, thread_id: str = typer.Argument(..., help="Thread ID")) -> None:
    """Resume a paused thread."""
    run_action(ctx, lambda client: client.resume_thread(thread_id), lambda _: md.success("Thread resumed."))


@threads_app.command("complete")
def complete_thread(
    ctx: typer.Context,
    thread_id: str = typer.Argument(..., help="Thread ID"),
    state: str = typer.Option(..., "--state", help="Final state (COMPLETED|FAILED|CANCELLED|TERMINATED)"),
) -> None:
    """Manually complete a thread."""
    run_action(
        ctx,
        lambda client: client.complete_thread(thread_id, state),
        lambda _: md.success("Thread completed."),
    )


@threads_app.command("evaluate")
def evaluate_thread(ctx: typer.Context, thread_id: str = typer.Argument(..., help="Thread ID")) -> None:
    """Trigger evaluation of a completed thread."""
    run_action(ctx, lambda client: client.evaluate_thread(thread_id), format_evaluation)


@threads_app.command("evaluation")
def thread_evaluation(ctx: typer.Context, thread_id: str = typer.Argument(..., help="Thread ID")) -> None:
    """Show the stored evaluation of a thread."""
    run_action(ctx, lambda client: client.get_thread_evaluation(thread_id), format_evaluation)


@costs_app.command("daily")
def daily_costs(
    ctx: typer.Context,
    agent_id: str = typer.Argument(..., help="Agent ID"),
    start_date: Optional[str] = typer.Option(None, "--start-date", help="Start date (YYYY-MM-DD)"),
    end_date: Optional[str] = typer.Option(None, "--end-date", help="End date (YYYY-MM-DD)"),
) -> None:
    """Get daily cost breakdown."""

    def human(items):
        if not isinstance(items, list) or not items:
            return "_No cost data._"
        columns = ["date", "totalCost", "inputTokens", "outputTokens", "threadCount"]
        return "\n".join([md.heading(2, "Daily Costs"), "", md.table(items, columns=columns)])

    run_action(ctx, lambda client: client.get_daily_costs(agent_id, start_date, end_date), human)


@costs_app.command("monthly")
def monthly_costs(
    ctx: typer.Context,
    agent_id: str = typer.Argument(..., help="Agent ID"),
    start_month: Optional[str] = typer.Option(None, "--start-month", help="Start month (YYYY-MM)"),
    end_month: Optional[str] = typer.Option(None, "--end-month", help="End month (YYYY-MM)"),
) -> None:
    """Get monthly cost breakdown."""

    def human(items):
        if not isinstance(items, list) or not items:
            return "_No cost data._"
        return "\n".join([md.heading(2, "Monthly Costs"), "", md.table(items)])

    run_action(ctx, lambda client: client.get_monthly_costs(agent_id, start_month, end_month), human)


@costs_app.command("summary")
def cost_summary(ctx: typer.Context, agent_id: str = typer.Argument(..., help="Agent ID")) -> None:
    """Get cost summary (today + current month)."""
    run_action(ctx, lambda client: client.get_cost_summary(agent_id), format_cost_summary)
