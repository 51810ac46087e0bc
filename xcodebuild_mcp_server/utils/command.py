#!/usr/bin/env python3
"""External command execution"""

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple

from xcodebuild_mcp_server.exceptions import DependencyError, SystemFailureError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandSpec:
    """One external process invocation."""
    argv: Tuple[str, ...]
    label: str
    use_shell: bool = False
    env: Optional[Mapping[str, str]] = None
    detached: bool = False
    output_path: Optional[str] = None
    timeout: Optional[float] = None

    def __post_init__(self):
        # Callers may pass lists; keep the stored value immutable
        object.__setattr__(self, "argv", tuple(str(arg) for arg in self.argv))
        if self.detached and not self.output_path:
            raise ValueError("detached commands need an output_path")

    @property
    def command_line(self) -> str:
        return shlex.join(self.argv)


@dataclass(frozen=True)
class ExecutionResult:
    success: bool
    output: str = ""
    error: Optional[str] = None
    process: Any = None
    exit_code: Optional[int] = None
    timed_out: bool = False


CommandExecutor = Callable[[CommandSpec], ExecutionResult]


def command(argv: Sequence[str], label: str, **options) -> CommandSpec:
    """Shorthand for building a CommandSpec from any argv sequence."""
    return CommandSpec(argv=tuple(argv), label=label, **options)


def _popen_args(spec: CommandSpec):
    if spec.use_shell:
        return ["/bin/sh", "-c", spec.command_line]
    return list(spec.argv)


def _merged_env(spec: CommandSpec) -> Optional[dict]:
    if not spec.env:
        return None
    env = os.environ.copy()
    env.update(spec.env)
    return env


def _start_detached(spec: CommandSpec) -> ExecutionResult:
    try:
        log_file = open(spec.output_path, "a", encoding="utf-8")
    except OSError as e:
        raise SystemFailureError(f"Cannot open output file for {spec.label}: {spec.output_path}", e) from e

    with log_file:
        process = subprocess.Popen(
            _popen_args(spec),
            stdout=log_file,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            env=_merged_env(spec),
            start_new_session=True,
        )
    logger.info(f"{spec.label}: started background process {process.pid}")
    return ExecutionResult(success=True, output="", process=process)


def execute_command(spec: CommandSpec) -> ExecutionResult:
    """
    Run a command and capture its outcome.

    A non-zero exit is reported through ExecutionResult.success, never raised.

    Args:
        spec: The command to run

    Returns:
        ExecutionResult with captured stdout/stderr

    Raises:
        DependencyError: If the executable cannot be found
        SystemFailureError: If the process cannot be spawned
    """
    logger.debug(f"Executing {spec.label} command: {spec.command_line}")

    try:
        if spec.detached:
            return _start_detached(spec)

        result = subprocess.run(
            _popen_args(spec),
            capture_output=True,
            text=True,
            env=_merged_env(spec),
            timeout=spec.timeout,
        )
    except subprocess.TimeoutExpired:
        logger.error(f"{spec.label} timed out after {spec.timeout} seconds")
        return ExecutionResult(
            success=False,
            error=f"{spec.label} timed out after {spec.timeout:g} seconds",
            timed_out=True,
        )
    except FileNotFoundError as e:
        raise DependencyError(f"Executable not found for {spec.label}: {e.filename or spec.argv[0]}") from e
    except OSError as e:
        raise SystemFailureError(f"Failed to execute {spec.label}: {e}", e) from e

    success = result.returncode == 0
    if not success:
        logger.debug(f"{spec.label} exited with code {result.returncode}")

    return ExecutionResult(
        success=success,
        output=result.stdout or "",
        error=result.stderr if result.stderr else None,
        exit_code=result.returncode,
    )


def with_timeout(executor: CommandExecutor, timeout: Optional[float]) -> CommandExecutor:
    """Wrap an executor so specs without their own timeout get the default one."""
    if timeout is None:
        return executor

    def run(spec: CommandSpec) -> ExecutionResult:
        if spec.timeout is None and not spec.detached:
            spec = CommandSpec(
                argv=spec.argv,
                label=spec.label,
                use_shell=spec.use_shell,
                env=spec.env,
                timeout=timeout,
            )
        return executor(spec)

    return run


def is_process_running(process, killed: bool = False) -> bool:
    """True when a tracked process was neither signalled by us nor has exited."""
    if killed or process is None:
        return False
    return process.poll() is None
