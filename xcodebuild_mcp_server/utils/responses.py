#!/usr/bin/env python3
"""Tool response envelope, validation helpers and the tool error boundary"""

import functools
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from mcp.server.fastmcp.exceptions import ToolError
from mcp.types import ImageContent, TextContent

from xcodebuild_mcp_server.exceptions import as_tool_error

logger = logging.getLogger(__name__)


ContentBlock = Union[TextContent, ImageContent]


def text_block(text: str) -> TextContent:
    return TextContent(type="text", text=text)


def image_block(data: str, mime_type: str) -> ImageContent:
    """Base64-encoded image content."""
    return ImageContent(type="image", data=data, mimeType=mime_type)


@dataclass(frozen=True)
class ToolResponse:
    """Ordered content blocks plus an error flag. Never mutated after construction."""
    content: Tuple[ContentBlock, ...]
    is_error: bool = False

    @property
    def texts(self) -> List[str]:
        return [block.text for block in self.content if isinstance(block, TextContent)]

    @property
    def text(self) -> str:
        return "\n".join(self.texts)

    def with_blocks(self, *texts: str, prepend: Sequence[str] = ()) -> "ToolResponse":
        """Return a new response with extra blocks added around the existing ones."""
        return ToolResponse(
            content=tuple(text_block(t) for t in prepend) + self.content + tuple(text_block(t) for t in texts),
            is_error=self.is_error,
        )


def create_response(texts: Iterable[str], is_error: bool = False) -> ToolResponse:
    return ToolResponse(content=tuple(text_block(t) for t in texts), is_error=is_error)


def create_text_response(text: str, is_error: bool = False) -> ToolResponse:
    return create_response([text], is_error)


def create_error_response(message: str, details: Optional[str] = None) -> ToolResponse:
    text = f"Error: {message}"
    if details:
        text += f"\nDetails: {details}"
    return create_text_response(text, is_error=True)


def missing_param_response(name: str) -> ToolResponse:
    return create_text_response(
        f"Required parameter '{name}' is missing. Please provide a value for this parameter.",
        is_error=True,
    )


def validate_required_params(params: Mapping[str, Any], names: Sequence[str]) -> Optional[ToolResponse]:
    """
    Check required parameters in declaration order.

    Returns:
        The error response for the first missing parameter, or None if all are present
    """
    for name in names:
        if params.get(name) is None:
            return missing_param_response(name)
    return None


def validate_exactly_one(params: Mapping[str, Any], first: str, second: str) -> Optional[ToolResponse]:
    """Exactly one of two alternative parameters must be given."""
    has_first = bool(params.get(first))
    has_second = bool(params.get(second))
    if not has_first and not has_second:
        return create_text_response(f"Either {first} or {second} is required.", is_error=True)
    if has_first and has_second:
        return create_text_response(
            f"{first} and {second} are mutually exclusive. Provide only one.",
            is_error=True,
        )
    return None


def validate_project_or_workspace(params: Mapping[str, Any]) -> Optional[ToolResponse]:
    return validate_exactly_one(params, "project_path", "workspace_path")


def drop_empty(params: Mapping[str, Any]) -> dict:
    """Treat blank strings as absent so optional fields fall back to their defaults."""
    return {k: v for k, v in params.items() if not (isinstance(v, str) and v.strip() == "")}


def tool_boundary(error_prefix: str):
    """
    Catch every exception raised by a tool's logic and turn it into an error response.

    Args:
        error_prefix: Leading text of the error message, e.g. "Error during test run"
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> ToolResponse:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                error = as_tool_error(e)
                logger.error(f"{error_prefix}: {error.message} ({error.kind.value})")
                return create_text_response(f"{error_prefix}: {error.message}", is_error=True)
        return wrapper
    return decorator


def to_mcp_result(response: ToolResponse) -> List[ContentBlock]:
    """
    Convert an envelope for FastMCP.

    Error envelopes are raised as ToolError so the client receives isError=True.
    """
    if response.is_error:
        raise ToolError(response.text)
    return list(response.content)
