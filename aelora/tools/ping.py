from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from .capability import CallContext
from .tool import Tool, tool


class PingInput(BaseModel):
    message: str | None = Field(default=None, description="Optional message to echo back.")


@tool(
    name="ping",
    description=(
        "Responds with pong and the current server time. "
        "Use this to test if tools are working."
    ),
)
def ping(ctx: CallContext, input: PingInput) -> str:
    now = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    echo = f" Echo: {input.message}" if input.message else ""
    return f"Pong! Server time: {now}{echo}"


def create_ping_tool() -> Tool:
    return ping
