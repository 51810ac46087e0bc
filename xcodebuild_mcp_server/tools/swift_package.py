#!/usr/bin/env python3
"""Swift Package tools - build, test, run, and manage background runs"""

import logging
import os
import uuid
from datetime import datetime
from typing import List, Optional

from xcodebuild_mcp_server.context import get_default_context
from xcodebuild_mcp_server.exceptions import CommandFailedError, as_tool_error
from xcodebuild_mcp_server.server import mcp
from xcodebuild_mcp_server.utils.command import command, is_process_running
from xcodebuild_mcp_server.utils.responses import (
    create_error_response,
    create_response,
    create_text_response,
    drop_empty,
    to_mcp_result,
    tool_boundary,
    validate_required_params,
)
from xcodebuild_mcp_server.utils.swift_package import (
    SWIFT_RUN_LOG_PREFIX,
    SwiftProcess,
    configuration_args,
    parse_as_library_args,
    resolve_package_path,
    run_timeout,
)

logger = logging.getLogger(__name__)


def _run_swift(argv: List[str], label: str, context, action: str, **options):
    """Execute a swift command; spawn failures become an error response instead of raising."""
    logger.info(f"Running {' '.join(argv)}")
    try:
        return context.executor(command(argv, label, use_shell=True, **options)), None
    except Exception as e:
        message = as_tool_error(e).message
        logger.error(f"Swift {action} failed: {message}")
        return None, create_error_response(f"Failed to execute swift {action}", message)


@tool_boundary("Error during swift_package_build")
def swift_package_build_logic(params: dict, context):
    params = drop_empty(params)
    error = validate_required_params(params, ["package_path"])
    if error:
        return error
    config_args, error = configuration_args(params.get("configuration"))
    if error:
        return error

    argv = ["swift", "build", "--package-path", resolve_package_path(params["package_path"]), *config_args]
    if params.get("target_name"):
        argv += ["--target", params["target_name"]]
    for arch in params.get("architectures") or ():
        argv += ["--arch", arch]
    argv += parse_as_library_args(params)

    result, error = _run_swift(argv, "Swift Package Build", context, "build")
    if error:
        return error
    if not result.success:
        return create_error_response("Swift package build failed", result.error or result.output)

    return create_response([
        "✅ Swift package build succeeded.",
        "💡 Next: Run tests with swift_package_test or execute with swift_package_run",
        result.output or "(no output)",
    ])


@tool_boundary("Error during swift_package_test")
def swift_package_test_logic(params: dict, context):
    params = drop_empty(params)
    error = validate_required_params(params, ["package_path"])
    if error:
        return error
    config_args, error = configuration_args(params.get("configuration"))
    if error:
        return error

    argv = ["swift", "test", "--package-path", resolve_package_path(params["package_path"]), *config_args]
    if params.get("test_product"):
        argv += ["--test-product", params["test_product"]]
    if params.get("filter"):
        argv += ["--filter", params["filter"]]
    if params.get("parallel") is False:
        argv.append("--no-parallel")
    if params.get("show_codecov"):
        argv.append("--show-code-coverage")
    argv += parse_as_library_args(params)

    result, error = _run_swift(argv, "Swift Package Test", context, "test")
    if error:
        return error
    if not result.success:
        return create_error_response("Swift package tests failed", result.error or result.output)

    return create_response([
        "✅ Swift package tests completed.",
        "💡 Next: Execute your app with swift_package_run if tests passed",
        result.output or "(no output)",
    ])


def _start_background(argv: List[str], params, package_path: str, context) -> SwiftProcess:
    fs = context.file_system
    log_file_path = os.path.join(fs.tmpdir(), f"{SWIFT_RUN_LOG_PREFIX}{uuid.uuid4()}.log")
    fs.write_text(log_file_path, "")

    result = context.executor(command(argv, "Swift Package Run", detached=True, output_path=log_file_path))
    if not result.success:
        raise CommandFailedError(result.error or "Failed to start swift run")

    entry = SwiftProcess(
        pid=result.process.pid,
        process=result.process,
        package_path=package_path,
        executable_name=params.get("executable_name"),
        log_file_path=log_file_path,
        started_at=datetime.now(),
    )
    context.swift_processes.add(entry)
    logger.info(f"Started swift run in background with PID {entry.pid}, output in {log_file_path}")
    return entry


@tool_boundary("Error: Failed to execute swift run")
def swift_package_run_logic(params: dict, context):
    """
    Run an executable target with `swift run`.

    Foreground runs are bounded by a timeout; when it expires the command is
    started again in the background and tracked like a background run.
    """
    params = drop_empty(params)
    error = validate_required_params(params, ["package_path"])
    if error:
        return error
    config_args, error = configuration_args(params.get("configuration"))
    if error:
        return error

    package_path = resolve_package_path(params["package_path"])
    argv = ["swift", "run", "--package-path", package_path, *config_args, *parse_as_library_args(params)]
    if params.get("executable_name"):
        argv.append(params["executable_name"])
    if params.get("arguments"):
        argv += ["--", *params["arguments"]]

    if params.get("background"):
        entry = _start_background(argv, params, package_path, context)
        return create_text_response(
            f"🚀 Started executable in background (PID: {entry.pid})\n"
            f"💡 Process is running independently. Use swift_package_stop with PID {entry.pid} "
            "to terminate when needed.\n"
            f"📄 Output: {entry.log_file_path}"
        )

    timeout = run_timeout(params.get("timeout"))
    result, error = _run_swift(argv, "Swift Package Run", context, "run", timeout=timeout)
    if error:
        return error

    if result.timed_out:
        entry = _start_background(argv, params, package_path, context)
        return create_response([
            f"⏱️ Process timed out after {timeout:g} seconds but continues running.",
            f"PID: {entry.pid}",
            f"💡 Process is still running. Use swift_package_stop with PID {entry.pid} to terminate when needed.",
            result.output or "(no output so far)",
        ])

    if result.success:
        return create_response([
            "✅ Swift executable completed successfully.",
            "💡 Process finished cleanly. Check output for results.",
            result.output or "(no output)",
        ])

    texts = ["❌ Swift executable failed.", result.output or "(no output)"]
    if result.error:
        texts.append(f"Errors:\n{result.error}")
    return create_response(texts)


@tool_boundary("Error: Failed to stop process")
def swift_package_stop_logic(params: dict, context):
    error = validate_required_params(params, ["pid"])
    if error:
        return error

    pid = params["pid"]
    entry = context.swift_processes.get(pid)
    if entry is None:
        return create_text_response(
            f"⚠️ No running process found with PID {pid}. Use swift_package_run to check active processes.",
            is_error=True,
        )

    try:
        if is_process_running(entry.process):
            entry.process.terminate()
    except OSError as e:
        logger.error(f"Failed to stop swift process {pid}: {e}")
        return create_error_response("Failed to stop process", str(e))
    finally:
        context.swift_processes.remove(pid)

    return create_response([
        f"✅ Stopped executable (was running since {entry.started_at.isoformat()})",
        "💡 Process terminated. You can now run swift_package_run again if needed.",
    ])


@tool_boundary("Error listing Swift Package processes")
def swift_package_list_logic(params: dict, context):
    processes = context.swift_processes.running()
    if not processes:
        return create_response([
            "ℹ️ No Swift Package processes currently running.",
            "💡 Use swift_package_run to start an executable.",
        ])

    now = datetime.now()
    texts = [f"📋 Active Swift Package processes ({len(processes)}):"]
    for entry in processes:
        seconds = max(1, round((now - entry.started_at).total_seconds()))
        texts.append(
            f"  • PID {entry.pid}: {entry.executable_name or 'default'} ({entry.package_path}) - running {seconds}s"
        )
    texts.append("💡 Use swift_package_stop with a PID to terminate a process.")
    return create_response(texts)


@mcp.tool()
def swift_package_build(package_path: str, target_name: Optional[str] = None,
                        configuration: Optional[str] = None, architectures: Optional[List[str]] = None,
                        parse_as_library: Optional[bool] = None):
    """
    Build a Swift package with `swift build`.

    Args:
        package_path: Path to the Swift package root
        target_name: Build only this target
        configuration: 'debug' (default) or 'release'
        architectures: Architectures to build for, e.g. ['arm64', 'x86_64']
        parse_as_library: Add -parse-as-library for @main support
    """
    params = dict(locals())
    return to_mcp_result(swift_package_build_logic(params, get_default_context()))


@mcp.tool()
def swift_package_test(package_path: str, test_product: Optional[str] = None, filter: Optional[str] = None,
                       configuration: Optional[str] = None, parallel: Optional[bool] = None,
                       show_codecov: Optional[bool] = None, parse_as_library: Optional[bool] = None):
    """
    Run a Swift package's tests with `swift test`.

    Args:
        package_path: Path to the Swift package root
        test_product: Test product to run
        filter: Only run tests matching this regex
        configuration: 'debug' (default) or 'release'
        parallel: Set to false to run tests serially
        show_codecov: Collect and show code coverage
        parse_as_library: Add -parse-as-library for @main support
    """
    params = dict(locals())
    return to_mcp_result(swift_package_test_logic(params, get_default_context()))


@mcp.tool()
def swift_package_run(package_path: str, executable_name: Optional[str] = None,
                      arguments: Optional[List[str]] = None, configuration: Optional[str] = None,
                      timeout: Optional[float] = None, background: Optional[bool] = None,
                      parse_as_library: Optional[bool] = None):
    """
    Run an executable target of a Swift package with `swift run`.

    Args:
        package_path: Path to the Swift package root
        executable_name: Executable to run, defaults to the package's only executable
        arguments: Arguments passed to the executable
        configuration: 'debug' (default) or 'release'
        timeout: Seconds to wait in the foreground (default 30, max 300)
        background: Start in the background and return immediately
        parse_as_library: Add -parse-as-library for @main support
    """
    params = dict(locals())
    return to_mcp_result(swift_package_run_logic(params, get_default_context()))


@mcp.tool()
def swift_package_stop(pid: int):
    """
    Stop a background `swift run` process.

    Args:
        pid: Process id reported by swift_package_run
    """
    params = dict(locals())
    return to_mcp_result(swift_package_stop_logic(params, get_default_context()))


@mcp.tool()
def swift_package_list():
    """List background `swift run` processes started by this server."""
    return to_mcp_result(swift_package_list_logic({}, get_default_context()))
