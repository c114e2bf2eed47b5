"""Command definitions for the gateway side of the protocol.

Commands are requests from the driving client to the target plugin. Each
command carries a correlation id that the plugin echoes back in its answer:

    {
        "id": "5f0c...",
        "type": "message",
        "channel": "room1",
        "message": {"id": "5f0c...", "command": "get_selection", "params": {}}
    }

The join pseudo-command uses the same envelope with `type: "join"` and is
acknowledged by the relay itself rather than by the plugin.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class CommandName(str, Enum):
    """Commands understood by the Figma plugin, plus the join pseudo-command."""

    JOIN = "join"

    # Document inspection
    GET_DOCUMENT_INFO = "get_document_info"
    GET_SELECTION = "get_selection"
    GET_NODE_INFO = "get_node_info"
    GET_STYLES = "get_styles"
    GET_LOCAL_COMPONENTS = "get_local_components"
    GET_TEAM_COMPONENTS = "get_team_components"

    # Node editing
    MOVE_NODE = "move_node"
    RESIZE_NODE = "resize_node"
    DELETE_NODE = "delete_node"
    CLONE_NODE = "clone_node"
    EXECUTE_CODE = "execute_code"

    # SVG round-trip
    IMPORT_SVG = "import_svg"
    EXPORT_CURRENT_PAGE_AS_SVG = "export_current_page_as_svg"


def new_correlation_id() -> str:
    """Return a fresh random 128-bit correlation id."""
    return str(uuid.uuid4())


class CommandRequest(BaseModel):
    """The inner `message` object of a gateway frame."""

    id: str
    command: str
    params: dict[str, Any] = Field(default_factory=dict)


class GatewayFrame(BaseModel):
    """Outer frame sent by the gateway to the relay."""

    id: str
    type: Literal["join", "message"]
    channel: str | None
    message: CommandRequest

    @classmethod
    def create(
        cls,
        command: str | CommandName,
        params: dict[str, Any] | None = None,
        channel: str | None = None,
        request_id: str | None = None,
    ) -> GatewayFrame:
        """Build the frame for a command.

        For the join pseudo-command the target channel is taken from
        `params["channel"]`; every other command is addressed to `channel`.
        """
        name = command.value if isinstance(command, CommandName) else command
        request_id = request_id or new_correlation_id()
        params = dict(params or {})

        if name == CommandName.JOIN.value:
            return cls(
                id=request_id,
                type="join",
                channel=params.get("channel"),
                message=CommandRequest(id=request_id, command=name, params=params),
            )

        return cls(
            id=request_id,
            type="message",
            channel=channel,
            message=CommandRequest(id=request_id, command=name, params=params),
        )

    def to_json(self) -> str:
        """Serialize to JSON."""
        return self.model_dump_json()
