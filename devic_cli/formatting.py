"""Markdown helpers for human-readable output."""

import json
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

OK_STATES = {"completed", "active", "success"}
BUSY_STATES = {"processing", "queued", "handed_off"}
ATTENTION_STATES = {
    "paused",
    "paused_for_approval",
    "paused_for_resume",
    "waiting_for_tool_response",
    "waiting_for_response",
}
FAILED_STATES = {
    "failed",
    "error",
    "terminated",
    "cancelled",
    "approval_rejected",
    "guardrail_trigger",
}

# Bulky nested fields that never make sense as table columns
SKIP_COLUMNS = {
    "__v",
    "threadContent",
    "chatContent",
    "chatHistory",
    "presets",
    "assistantSpecialization",
    "toolServerDefinition",
    "previousConversation",
    "memoryDocuments",
}

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def heading(level: int, text: str) -> str:
    return f"{'#' * level} {text}"


def bold(text: str) -> str:
    return f"**{text}**"


def code(text: str) -> str:
    return f"`{text}`"


def code_block(content: str, lang: str = "") -> str:
    return f"```{lang}\n{content}\n```"


def status(state: Optional[str]) -> str:
    s = (state or "").lower()
    if s in OK_STATES:
        return "[OK]"
    if s in BUSY_STATES:
        return "[..]"
    if s in ATTENTION_STATES:
        return "[!!]"
    if s in FAILED_STATES:
        return "[XX]"
    return "[--]"


def success(text: str) -> str:
    return f"[OK] {text}"


def warn(text: str) -> str:
    return f"[!!] {text}"


def info(text: str) -> str:
    return f"> {text}"


def hr() -> str:
    return "---"


def bullet_list(items: Iterable[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


def humanize_key(key: str) -> str:
    """``chatUID`` -> ``Chat UID``, ``creationTimestampMs`` -> ``Creation Timestamp (ms)``."""
    text = re.sub(r"([a-z])([A-Z])", r"\1 \2", key)
    text = re.sub(r"[_-]", " ", text)
    text = re.sub(r"\b\w", lambda m: m.group(0).upper(), text)
    text = re.sub(r"\bUid\b", "UID", text, flags=re.IGNORECASE)
    text = re.sub(r"\bId\b", "ID", text)
    text = re.sub(r"\bUrl\b", "URL", text, flags=re.IGNORECASE)
    text = re.sub(r"\bLlm\b", "LLM", text, flags=re.IGNORECASE)
    return re.sub(r"\bMs$", "(ms)", text)


def format_timestamp(ms: Any) -> str:
    if not ms:
        return "-"
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def _format_value(key: str, value: Any) -> str:
    if value is True:
        return "Yes"
    if value is False:
        return "No"
    if "timestamp" in key.lower() and isinstance(value, (int, float)):
        return format_timestamp(value)
    return str(value)


def _format_cell(key: str, value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, list):
        return f"[{len(value)}]"
    if isinstance(value, dict):
        return "{...}"
    return _format_value(key, value)


def _strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text)


def _truncate(text: str, max_width: int) -> str:
    if len(_strip_ansi(text)) <= max_width:
        return text
    return text[: max_width - 1] + "~"


def select_columns(sample: Dict[str, Any], limit: int = 8) -> List[str]:
    columns = [
        key
        for key, value in sample.items()
        if key not in SKIP_COLUMNS and not isinstance(value, (dict, list))
    ]
    return columns[:limit]


def table(
    rows: Sequence[Dict[str, Any]],
    columns: Optional[Sequence[str]] = None,
    max_col_width: int = 50,
) -> str:
    if not rows:
        return "_No results._"
    keys = list(columns) if columns else select_columns(rows[0])
    if not keys:
        return "_No displayable columns._"

    headers = [humanize_key(k) for k in keys]
    cells = [
        [_truncate(_format_cell(k, row.get(k)), max_col_width) for k in keys]
        for row in rows
    ]
    widths = [
        max([len(headers[i])] + [len(_strip_ansi(r[i])) for r in cells])
        for i in range(len(keys))
    ]

    def render(values: Sequence[str]) -> str:
        padded = [
            v.ljust(widths[i] + len(v) - len(_strip_ansi(v)))
            for i, v in enumerate(values)
        ]
        return "| " + " | ".join(padded) + " |"

    lines = [render(headers), "| " + " | ".join("-" * w for w in widths) + " |"]
    lines.extend(render(row) for row in cells)
    return "\n".join(lines)


def props(
    obj: Dict[str, Any],
    title: Optional[str] = None,
    pick: Optional[Sequence[str]] = None,
    omit: Optional[Sequence[str]] = None,
) -> str:
    """Render a dict as a bold-labelled key/value list."""
    lines: List[str] = []
    if title:
        lines.extend([heading(2, title), ""])

    for key, value in obj.items():
        if pick is not None and key not in pick:
            continue
        if omit is not None and key in omit:
            continue
        if value is None:
            continue
        label = bold(humanize_key(key))
        if isinstance(value, dict):
            lines.extend([f"{label}:", code_block(json.dumps(value, indent=2), "json"), ""])
        elif isinstance(value, list):
            if not value:
                lines.append(f"{label}: _none_")
            elif isinstance(value[0], dict):
                lines.extend([f"{label}:", "", table(value), ""])
            else:
                lines.append(f"{label}: {', '.join(code(str(v)) for v in value)}")
        else:
            lines.append(f"{label}: {_format_value(key, value)}")
    return "\n".join(lines)


def message_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, dict):
        if isinstance(content.get("message"), str):
            return content["message"]
        if content.get("data"):
            return code_block(json.dumps(content["data"], indent=2), "json")
        return json.dumps(content, indent=2)
    return "" if content is None else str(content)


def conversation(messages: Optional[Sequence[Dict[str, Any]]]) -> str:
    if not messages:
        return "_No messages._"
    return "\n\n".join(
        f"**{str(msg.get('role', '')).upper()}:**\n{message_text(msg.get('content'))}"
        for msg in messages
    )


def pagination(data: Dict[str, Any]) -> str:
    parts = []
    if data.get("total") is not None:
        parts.append(f"**Total:** {data['total']}")
    if data.get("offset") is not None:
        parts.append(f"**Offset:** {data['offset']}")
    if data.get("limit") is not None:
        parts.append(f"**Limit:** {data['limit']}")
    if data.get("hasMore"):
        parts.append("_More results available._")
    return "\n" + " | ".join(parts) if parts else ""


def format_default(data: Any) -> str:
    if data is None:
        return "_empty_"
    if isinstance(data, list):
        if not data:
            return "_No results._"
        if not isinstance(data[0], dict):
            return bullet_list(str(item) for item in data)
        return table(data)
    if isinstance(data, dict):
        return props(data)
    return str(data)
