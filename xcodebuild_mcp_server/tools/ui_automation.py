#!/usr/bin/env python3
"""UI automation tools driving simulators through the axe binary, plus simulator screenshots"""

import base64
import logging
import os
import uuid
from typing import List, Optional

from xcodebuild_mcp_server.context import get_default_context
from xcodebuild_mcp_server.exceptions import InvalidParameterError
from xcodebuild_mcp_server.server import mcp
from xcodebuild_mcp_server.utils.axe import (
    LOG_PREFIX,
    axe_failure_response,
    execute_axe_command,
    run_axe_action,
)
from xcodebuild_mcp_server.utils.command import command
from xcodebuild_mcp_server.utils.responses import (
    ToolResponse,
    create_error_response,
    create_response,
    image_block,
    to_mcp_result,
    tool_boundary,
    validate_required_params,
)

logger = logging.getLogger(__name__)

SCREENSHOT_LOG_PREFIX = "[Screenshot]"
SCREENSHOT_MAX_SIZE = 800
SCREENSHOT_JPEG_QUALITY = 75

BUTTON_TYPES = ("apple-pay", "home", "lock", "side-button", "siri")

GESTURE_PRESETS = (
    "scroll-up",
    "scroll-down",
    "scroll-left",
    "scroll-right",
    "swipe-from-left-edge",
    "swipe-from-right-edge",
    "swipe-from-top-edge",
    "swipe-from-bottom-edge",
)

DESCRIBE_UI_NEXT_STEPS = (
    "Next Steps:\n"
    "- Use frame coordinates for tap/swipe (center: x+width/2, y+height/2)\n"
    "- Re-run describe_ui after layout changes\n"
    "- Screenshots are for visual verification only"
)


def format_number(value) -> str:
    """Render 1.0 as "1" and 0.5 as "0.5" for axe arguments and messages."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _non_negative(params, *names):
    for name in names:
        value = params.get(name)
        if value is not None and value < 0:
            raise InvalidParameterError(f"{name} must be non-negative")


def _positive(params, *names):
    for name in names:
        value = params.get(name)
        if value is not None and value <= 0:
            raise InvalidParameterError(f"{name} must be a positive number")


def _append_options(args: List[str], params, options) -> List[str]:
    """Append `--flag value` pairs for every option present in params."""
    for name, flag in options:
        value = params.get(name)
        if value is not None:
            args += [flag, format_number(value)]
    return args


@tool_boundary("Error during describe_ui")
def describe_ui_logic(params: dict, context):
    error = validate_required_params(params, ["simulator_uuid"])
    if error:
        return error

    simulator_uuid = params["simulator_uuid"]
    logger.info(f"{LOG_PREFIX}/describe_ui: Starting for {simulator_uuid}")
    try:
        hierarchy = execute_axe_command(context, ["describe-ui"], simulator_uuid, "describe-ui")
    except Exception as e:
        logger.error(f"{LOG_PREFIX}/describe_ui: Failed - {e}")
        return axe_failure_response(e, "Failed to get accessibility hierarchy")

    context.describe_ui_tracker.record(simulator_uuid)
    logger.info(f"{LOG_PREFIX}/describe_ui: Success for {simulator_uuid}")
    return create_response([
        f"Accessibility hierarchy retrieved successfully:\n```json\n{hierarchy}\n```",
        DESCRIBE_UI_NEXT_STEPS,
    ])


@tool_boundary("Error during tap")
def tap_logic(params: dict, context):
    error = validate_required_params(params, ["simulator_uuid", "x", "y"])
    if error:
        return error
    _non_negative(params, "pre_delay", "post_delay")

    x, y = params["x"], params["y"]
    args = _append_options(
        ["tap", "-x", str(x), "-y", str(y)], params,
        [("pre_delay", "--pre-delay"), ("post_delay", "--post-delay")],
    )
    return run_axe_action(
        context, "tap", args, params["simulator_uuid"],
        f"Tap at ({x}, {y}) simulated successfully.",
        f"Failed to simulate tap at ({x}, {y})",
        coordinate_warning=True,
    )


@tool_boundary("Error during long_press")
def long_press_logic(params: dict, context):
    error = validate_required_params(params, ["simulator_uuid", "x", "y", "duration"])
    if error:
        return error
    _positive(params, "duration")

    x, y, duration = params["x"], params["y"], params["duration"]
    # axe has no long-press command; a touch with a delay between down and up is equivalent
    args = ["touch", "-x", str(x), "-y", str(y), "--down", "--up", "--delay", format_number(duration / 1000)]
    return run_axe_action(
        context, "long_press", args, params["simulator_uuid"],
        f"Long press at ({x}, {y}) for {format_number(duration)}ms simulated successfully.",
        f"Failed to simulate long press at ({x}, {y})",
        coordinate_warning=True,
    )


@tool_boundary("Error during swipe")
def swipe_logic(params: dict, context):
    error = validate_required_params(params, ["simulator_uuid", "x1", "y1", "x2", "y2"])
    if error:
        return error
    _positive(params, "duration", "delta")
    _non_negative(params, "pre_delay", "post_delay")

    x1, y1, x2, y2 = params["x1"], params["y1"], params["x2"], params["y2"]
    args = _append_options(
        ["swipe", "--start-x", str(x1), "--start-y", str(y1), "--end-x", str(x2), "--end-y", str(y2)],
        params,
        [("duration", "--duration"), ("delta", "--delta"),
         ("pre_delay", "--pre-delay"), ("post_delay", "--post-delay")],
    )
    duration_text = f" duration={format_number(params['duration'])}s" if params.get("duration") else ""
    return run_axe_action(
        context, "swipe", args, params["simulator_uuid"],
        f"Swipe from ({x1}, {y1}) to ({x2}, {y2}){duration_text} simulated successfully.",
        "Failed to simulate swipe",
        coordinate_warning=True,
    )


@tool_boundary("Error during type_text")
def type_text_logic(params: dict, context):
    error = validate_required_params(params, ["simulator_uuid", "text"])
    if error:
        return error
    if params["text"] == "":
        raise InvalidParameterError("text must not be empty")

    return run_axe_action(
        context, "type_text", ["type", params["text"]], params["simulator_uuid"],
        "Text typing simulated successfully.",
        "Failed to simulate text typing",
    )


@tool_boundary("Error during key_press")
def key_press_logic(params: dict, context):
    error = validate_required_params(params, ["simulator_uuid", "key_code"])
    if error:
        return error
    key_code = params["key_code"]
    if not 0 <= key_code <= 255:
        raise InvalidParameterError("key_code must be between 0 and 255")
    _non_negative(params, "duration")

    args = _append_options(["key", str(key_code)], params, [("duration", "--duration")])
    return run_axe_action(
        context, "key_press", args, params["simulator_uuid"],
        f"Key press (code: {key_code}) simulated successfully.",
        f"Failed to simulate key press (code: {key_code})",
    )


@tool_boundary("Error during button")
def button_logic(params: dict, context):
    error = validate_required_params(params, ["simulator_uuid", "button_type"])
    if error:
        return error
    button_type = params["button_type"]
    if button_type not in BUTTON_TYPES:
        raise InvalidParameterError(f"button_type must be one of: {', '.join(BUTTON_TYPES)}")
    _non_negative(params, "duration")

    args = _append_options(["button", button_type], params, [("duration", "--duration")])
    return run_axe_action(
        context, "button", args, params["simulator_uuid"],
        f"Hardware button '{button_type}' pressed successfully.",
        f"Failed to press button '{button_type}'",
    )


@tool_boundary("Error during touch")
def touch_logic(params: dict, context):
    error = validate_required_params(params, ["simulator_uuid", "x", "y"])
    if error:
        return error
    down, up = bool(params.get("down")), bool(params.get("up"))
    if not down and not up:
        return create_error_response('At least one of "down" or "up" must be true')
    _non_negative(params, "delay")

    x, y = params["x"], params["y"]
    args = ["touch", "-x", str(x), "-y", str(y)]
    if down:
        args.append("--down")
    if up:
        args.append("--up")
    args = _append_options(args, params, [("delay", "--delay")])

    action = "touch down+up" if down and up else ("touch down" if down else "touch up")
    return run_axe_action(
        context, "touch", args, params["simulator_uuid"],
        f"Touch event ({action}) at ({x}, {y}) executed successfully.",
        "Failed to execute touch event",
        coordinate_warning=True,
    )


@tool_boundary("Error during gesture")
def gesture_logic(params: dict, context):
    error = validate_required_params(params, ["simulator_uuid", "preset"])
    if error:
        return error
    preset = params["preset"]
    if preset not in GESTURE_PRESETS:
        raise InvalidParameterError(f"preset must be one of: {', '.join(GESTURE_PRESETS)}")
    _positive(params, "screen_width", "screen_height", "duration", "delta")
    _non_negative(params, "pre_delay", "post_delay")

    args = _append_options(
        ["gesture", preset], params,
        [("screen_width", "--screen-width"), ("screen_height", "--screen-height"),
         ("duration", "--duration"), ("delta", "--delta"),
         ("pre_delay", "--pre-delay"), ("post_delay", "--post-delay")],
    )
    return run_axe_action(
        context, "gesture", args, params["simulator_uuid"],
        f"Gesture '{preset}' executed successfully.",
        f"Failed to execute gesture '{preset}'",
    )


@tool_boundary("Error during key_sequence")
def key_sequence_logic(params: dict, context):
    error = validate_required_params(params, ["simulator_uuid", "key_codes"])
    if error:
        return error
    key_codes = list(params["key_codes"])
    if not key_codes:
        raise InvalidParameterError("key_codes must contain at least one key code")
    if any(not 0 <= code <= 255 for code in key_codes):
        raise InvalidParameterError("key_codes must be between 0 and 255")
    _non_negative(params, "delay")

    codes = ",".join(str(code) for code in key_codes)
    args = _append_options(["key-sequence", "--keycodes", codes], params, [("delay", "--delay")])
    return run_axe_action(
        context, "key_sequence", args, params["simulator_uuid"],
        f"Key sequence [{codes}] executed successfully.",
        "Failed to execute key sequence",
    )


def _remove_quietly(fs, *paths):
    for path in paths:
        try:
            if fs.exists(path):
                fs.remove(path)
        except OSError as e:
            logger.warning(f"{SCREENSHOT_LOG_PREFIX}: Failed to delete temp file {path}: {e}")


@tool_boundary("Error during screenshot")
def screenshot_logic(params: dict, context):
    """
    Capture the simulator screen as a base64 image block.

    The PNG from simctl is shrunk to a JPEG with sips; if that fails the
    original PNG is returned instead.
    """
    error = validate_required_params(params, ["simulator_uuid"])
    if error:
        return error

    simulator_uuid = params["simulator_uuid"]
    fs = context.file_system
    temp_dir = fs.tmpdir()
    png_path = os.path.join(temp_dir, f"screenshot_{uuid.uuid4()}.png")
    jpeg_path = os.path.join(temp_dir, f"screenshot_optimized_{uuid.uuid4()}.jpg")

    logger.info(f"{SCREENSHOT_LOG_PREFIX}: Starting capture to {png_path} on {simulator_uuid}")
    result = context.executor(command(
        ["xcrun", "simctl", "io", simulator_uuid, "screenshot", png_path], f"{SCREENSHOT_LOG_PREFIX}: screenshot"
    ))
    if not result.success:
        logger.error(f"{SCREENSHOT_LOG_PREFIX}: Failed - {result.error or result.output}")
        return create_error_response(
            f"System error executing screenshot: Failed to capture screenshot: {result.error or result.output}"
        )

    try:
        optimized = context.executor(command(
            ["sips", "-Z", str(SCREENSHOT_MAX_SIZE), "-s", "format", "jpeg",
             "-s", "formatOptions", str(SCREENSHOT_JPEG_QUALITY), png_path, "--out", jpeg_path],
            f"{SCREENSHOT_LOG_PREFIX}: optimize image",
        ))
        if optimized.success:
            image_path, mime_type = jpeg_path, "image/jpeg"
        else:
            logger.warning(f"{SCREENSHOT_LOG_PREFIX}: Image optimization failed, using original PNG")
            image_path, mime_type = png_path, "image/png"
        data = base64.b64encode(fs.read_bytes(image_path)).decode("ascii")
    except OSError as e:
        logger.error(f"{SCREENSHOT_LOG_PREFIX}: Failed to process image file: {e}")
        return create_error_response(f"Screenshot captured but failed to process image file: {e}")
    finally:
        _remove_quietly(fs, png_path, jpeg_path)

    logger.info(f"{SCREENSHOT_LOG_PREFIX}: Success for {simulator_uuid}")
    return ToolResponse(content=(image_block(data, mime_type),))


@mcp.tool()
def describe_ui(simulator_uuid: str):
    """
    Get the accessibility hierarchy of the simulator screen as JSON, with frames for every element.

    Call this before tapping or swiping to get precise coordinates.

    Args:
        simulator_uuid: UUID of the simulator (from list_sims)
    """
    params = dict(locals())
    return to_mcp_result(describe_ui_logic(params, get_default_context()))


@mcp.tool()
def tap(simulator_uuid: str, x: int, y: int, pre_delay: Optional[float] = None,
        post_delay: Optional[float] = None):
    """
    Tap at a screen coordinate.

    Args:
        simulator_uuid: UUID of the simulator
        x: X coordinate in points
        y: Y coordinate in points
        pre_delay: Seconds to wait before the tap
        post_delay: Seconds to wait after the tap
    """
    params = dict(locals())
    return to_mcp_result(tap_logic(params, get_default_context()))


@mcp.tool()
def long_press(simulator_uuid: str, x: int, y: int, duration: float):
    """
    Long press at a screen coordinate.

    Args:
        simulator_uuid: UUID of the simulator
        x: X coordinate in points
        y: Y coordinate in points
        duration: Press duration in milliseconds
    """
    params = dict(locals())
    return to_mcp_result(long_press_logic(params, get_default_context()))


@mcp.tool()
def swipe(simulator_uuid: str, x1: int, y1: int, x2: int, y2: int, duration: Optional[float] = None,
          delta: Optional[float] = None, pre_delay: Optional[float] = None, post_delay: Optional[float] = None):
    """
    Swipe between two points.

    Args:
        simulator_uuid: UUID of the simulator
        x1: Start X coordinate
        y1: Start Y coordinate
        x2: End X coordinate
        y2: End Y coordinate
        duration: Swipe duration in seconds
        delta: Distance between touch points
        pre_delay: Seconds to wait before the swipe
        post_delay: Seconds to wait after the swipe
    """
    params = dict(locals())
    return to_mcp_result(swipe_logic(params, get_default_context()))


@mcp.tool()
def type_text(simulator_uuid: str, text: str):
    """
    Type text into the focused field (US keyboard characters only).

    Args:
        simulator_uuid: UUID of the simulator
        text: Text to type
    """
    params = dict(locals())
    return to_mcp_result(type_text_logic(params, get_default_context()))


@mcp.tool()
def key_press(simulator_uuid: str, key_code: int, duration: Optional[float] = None):
    """
    Press a key by HID keycode, e.g. 40=Return, 42=Backspace, 43=Tab, 44=Space.

    Args:
        simulator_uuid: UUID of the simulator
        key_code: HID keycode (0-255)
        duration: Seconds to hold the key
    """
    params = dict(locals())
    return to_mcp_result(key_press_logic(params, get_default_context()))


@mcp.tool()
def button(simulator_uuid: str, button_type: str, duration: Optional[float] = None):
    """
    Press a hardware button.

    Args:
        simulator_uuid: UUID of the simulator
        button_type: One of apple-pay, home, lock, side-button, siri
        duration: Seconds to hold the button
    """
    params = dict(locals())
    return to_mcp_result(button_logic(params, get_default_context()))


@mcp.tool()
def touch(simulator_uuid: str, x: int, y: int, down: Optional[bool] = None, up: Optional[bool] = None,
          delay: Optional[float] = None):
    """
    Send a touch down and/or touch up event at a coordinate.

    Args:
        simulator_uuid: UUID of the simulator
        x: X coordinate in points
        y: Y coordinate in points
        down: Send touch down
        up: Send touch up
        delay: Seconds between down and up
    """
    params = dict(locals())
    return to_mcp_result(touch_logic(params, get_default_context()))


@mcp.tool()
def gesture(simulator_uuid: str, preset: str, screen_width: Optional[int] = None,
            screen_height: Optional[int] = None, duration: Optional[float] = None,
            delta: Optional[float] = None, pre_delay: Optional[float] = None,
            post_delay: Optional[float] = None):
    """
    Perform a preset gesture such as scroll-up or swipe-from-left-edge.

    Args:
        simulator_uuid: UUID of the simulator
        preset: scroll-up, scroll-down, scroll-left, scroll-right, swipe-from-left-edge,
            swipe-from-right-edge, swipe-from-top-edge or swipe-from-bottom-edge
        screen_width: Screen width in points
        screen_height: Screen height in points
        duration: Gesture duration in seconds
        delta: Distance between touch points
        pre_delay: Seconds to wait before the gesture
        post_delay: Seconds to wait after the gesture
    """
    params = dict(locals())
    return to_mcp_result(gesture_logic(params, get_default_context()))


@mcp.tool()
def key_sequence(simulator_uuid: str, key_codes: List[int], delay: Optional[float] = None):
    """
    Press a sequence of keys by HID keycode.

    Args:
        simulator_uuid: UUID of the simulator
        key_codes: HID keycodes (0-255) pressed in order
        delay: Seconds between key presses
    """
    params = dict(locals())
    return to_mcp_result(key_sequence_logic(params, get_default_context()))


@mcp.tool()
def screenshot(simulator_uuid: str):
    """
    Capture a screenshot of the simulator screen for visual verification.

    Use describe_ui, not the screenshot, to find tap coordinates.

    Args:
        simulator_uuid: UUID of the simulator
    """
    params = dict(locals())
    return to_mcp_result(screenshot_logic(params, get_default_context()))
