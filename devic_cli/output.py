import json
import sys
from enum import Enum
from typing import Any, Callable, Dict, Optional, TextIO

from pydantic import BaseModel

from devic_cli import formatting as md


class OutputFormat(str, Enum):
    json = "json"
    human = "human"


def _plain(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(by_alias=True, exclude_none=True)
    if isinstance(data, list):
        return [_plain(item) for item in data]
    return data


class OutputRenderer:
    """Writes command results, errors and poll status events.

    JSON mode is for machines: results as pretty JSON on stdout, status
    events as NDJSON on stdout. Human mode writes markdown to stdout and
    status lines to stderr so piping a result stays clean.
    """

    def __init__(
        self,
        fmt: Optional[OutputFormat] = None,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ):
        self.stdout = stdout or sys.stdout
        self.stderr = stderr or sys.stderr
        if fmt is None:
            isatty = getattr(self.stdout, "isatty", None)
            fmt = OutputFormat.human if isatty and isatty() else OutputFormat.json
        self.format = OutputFormat(fmt)

    @property
    def is_human(self) -> bool:
        return self.format is OutputFormat.human

    def _write(self, stream: TextIO, text: str) -> None:
        stream.write(text + "\n")
        stream.flush()

    def output(self, data: Any, human_fn: Optional[Callable[[Any], str]] = None) -> None:
        data = _plain(data)
        if self.is_human:
            self._write(self.stdout, human_fn(data) if human_fn else md.format_default(data))
        else:
            self._write(self.stdout, json.dumps(data, indent=2))

    def message(self, text: str) -> None:
        self._write(self.stdout, text)

    def error(self, payload: Dict[str, Any]) -> None:
        if self.is_human:
            lines = [f"\n**Error:** {payload.get('error')}"]
            if payload.get("code"):
                lines.append(f"Code: `{payload['code']}`")
            if payload.get("statusCode"):
                lines.append(f"Status: {payload['statusCode']}")
            self._write(self.stderr, "\n".join(lines))
        else:
            self._write(self.stderr, json.dumps(payload))

    def status_line(self, event_type: str, fields: Dict[str, Any], timestamp: int) -> None:
        """Sink for poll status-change events."""
        if not self.is_human:
            self._write(self.stdout, json.dumps({"type": event_type, **fields, "timestamp": timestamp}))
            return

        if event_type == "chat_status":
            state = fields.get("status")
            line = f"{md.status(state)} Chat `{fields.get('chatUid')}` - **{state}**"
        elif event_type == "thread_status":
            state = fields.get("state")
            line = f"{md.status(state)} Thread `{fields.get('threadId')}` - **{state}**"
            progress = fields.get("progress")
            if progress and progress.get("total"):
                line += f" (tasks: {progress['completed']}/{progress['total']})"
        else:
            line = f"[{event_type}] {json.dumps(fields)}"
        self._write(self.stderr, line)
