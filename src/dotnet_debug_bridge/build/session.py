"""Build session - per-workspace state machine with process management.

State machine:
IDLE → BUILDING → READY | FAILED | CANCELLED
     ↑__________________________|

The build runs as a child process (never through a shell) with stdout and
stderr merged, so output lines keep the order dotnet printed them in.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Callable

from .policy import BuildPolicy
from .state import BuildError, BuildResult, BuildState

logger = logging.getLogger(__name__)

# Output buffer limits (security: prevent DoS)
MAX_OUTPUT_BYTES: int = 5_000_000  # 5MB total
MAX_OUTPUT_LINE: int = 10_000  # 10KB per line

# How often a blocked read re-checks for cancellation
READ_POLL_SECONDS: float = 1.0


class BuildSession:
    """Per-workspace build session with state machine.

    Only one build runs at a time per session (asyncio.Lock).
    """

    def __init__(
        self,
        workspace_root: str,
        policy: BuildPolicy | None = None,
    ):
        """Initialize build session.

        Args:
            workspace_root: Root directory of workspace
            policy: Build policy (created with defaults if not provided)
        """
        self._workspace_root = os.path.abspath(workspace_root)
        self._policy = policy or BuildPolicy(workspace_root=self._workspace_root)
        self._state = BuildState.IDLE
        self._lock = asyncio.Lock()
        self._current_process: asyncio.subprocess.Process | None = None
        self._cancel_requested = False
        self._last_result: BuildResult | None = None
        self._state_listeners: list[Callable[[BuildState], None]] = []

    @property
    def state(self) -> BuildState:
        """Current build state."""
        return self._state

    @property
    def workspace_root(self) -> str:
        """Workspace root directory."""
        return self._workspace_root

    @property
    def policy(self) -> BuildPolicy:
        """Policy used to validate build commands."""
        return self._policy

    @property
    def last_result(self) -> BuildResult | None:
        """Last build result."""
        return self._last_result

    @property
    def is_building(self) -> bool:
        """Whether a build is currently running."""
        return self._state == BuildState.BUILDING

    def on_state_change(self, listener: Callable[[BuildState], None]) -> None:
        """Register state change listener."""
        self._state_listeners.append(listener)

    def _set_state(self, new_state: BuildState) -> None:
        """Update state and notify listeners."""
        old_state = self._state
        self._state = new_state
        if old_state != new_state:
            logger.info(f"Build state: {old_state.value} -> {new_state.value}")
            for listener in self._state_listeners:
                try:
                    listener(new_state)
                except Exception:
                    logger.exception("State listener error")

    async def _run_command(
        self,
        command: list[str],
        cwd: str,
        env: dict[str, str] | None = None,
        timeout: float = 300.0,
    ) -> tuple[int, list[str]]:
        """Run command and collect merged output lines.

        Returns:
            Tuple of (exit_code, output_lines)

        Raises:
            asyncio.CancelledError: If cancelled
            asyncio.TimeoutError: If timeout exceeded
        """
        process_env = None
        if env:
            process_env = {**os.environ, **env}

        self._current_process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=cwd,
            env=process_env,
        )

        lines: list[str] = []
        byte_counter = 0

        async def read_stream(stream: asyncio.StreamReader | None) -> None:
            nonlocal byte_counter
            if stream is None:
                return
            while True:
                try:
                    line = await asyncio.wait_for(stream.readline(), timeout=READ_POLL_SECONDS)
                except asyncio.TimeoutError:
                    if self._cancel_requested:
                        raise asyncio.CancelledError()
                    continue
                if not line:
                    break
                decoded = line.decode("utf-8", errors="replace").rstrip("\r\n")
                if len(decoded) > MAX_OUTPUT_LINE:
                    decoded = decoded[:MAX_OUTPUT_LINE] + "...[truncated]"
                lines.append(decoded)
                byte_counter += len(decoded)
                # Drop old lines if buffer too large
                while byte_counter > MAX_OUTPUT_BYTES and lines:
                    byte_counter -= len(lines.pop(0))

        try:
            try:
                await asyncio.wait_for(read_stream(self._current_process.stdout), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Build timeout after {timeout}s")
                self._current_process.kill()
                raise
            except asyncio.CancelledError:
                self._kill_current()
                raise

            await self._current_process.wait()
            if self._cancel_requested:
                raise asyncio.CancelledError()
            exit_code = self._current_process.returncode or 0
            return exit_code, lines
        finally:
            self._current_process = None

    def _kill_current(self) -> None:
        process = self._current_process
        if process is None or process.returncode is not None:
            return
        try:
            process.kill()
        except ProcessLookupError:
            pass

    async def run(
        self,
        command: list[str],
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        timeout: float = 300.0,
    ) -> BuildResult:
        """Run an already validated build command.

        Args:
            command: Command and arguments
            cwd: Working directory (defaults to the workspace root)
            env: Environment overrides for the build process
            timeout: Timeout in seconds

        Returns:
            Build result; cancellation and timeout are reported in the result

        Raises:
            BuildError: If the process cannot be started
        """
        cwd = cwd or self._workspace_root
        async with self._lock:
            self._cancel_requested = False
            self._set_state(BuildState.BUILDING)
            start_time = time.perf_counter()
            logger.info(f"Running: {' '.join(command)} (cwd={cwd})")

            try:
                exit_code, lines = await self._run_command(command, cwd, env, timeout)
                success = exit_code == 0
                result = BuildResult(
                    success=success,
                    state=BuildState.READY if success else BuildState.FAILED,
                    command=command,
                    cwd=cwd,
                    exit_code=exit_code,
                    output_lines=lines,
                    duration_ms=(time.perf_counter() - start_time) * 1000,
                )

            except asyncio.CancelledError:
                result = BuildResult(
                    success=False,
                    state=BuildState.CANCELLED,
                    command=command,
                    cwd=cwd,
                    duration_ms=(time.perf_counter() - start_time) * 1000,
                    cancelled=True,
                )

            except asyncio.TimeoutError:
                result = BuildResult(
                    success=False,
                    state=BuildState.FAILED,
                    command=command,
                    cwd=cwd,
                    output_lines=[f"Build timeout after {timeout}s"],
                    duration_ms=(time.perf_counter() - start_time) * 1000,
                )

            except OSError as e:
                self._set_state(BuildState.FAILED)
                raise BuildError(f"Cannot start build process {command[0]}: {e}") from e

            self._last_result = result
            self._set_state(result.state)
            return result

    async def build(
        self,
        args: list[str],
        configuration: str = "Debug",
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        restore: bool = True,
        timeout: float = 300.0,
    ) -> BuildResult:
        """Validate task arguments and run the debug build.

        Args:
            args: Arguments after "dotnet build"
            configuration: Build configuration when args do not set one
            cwd: Working directory of the task
            env: Environment overrides
            restore: Whether the build may restore packages
            timeout: Timeout in seconds

        Raises:
            BuildError: If arguments violate the policy or the process cannot start
        """
        try:
            command = self._policy.get_build_command(args, configuration, cwd, restore)
        except ValueError as e:
            self._set_state(BuildState.FAILED)
            raise BuildError(str(e)) from e
        return await self.run(command, cwd=cwd, env=env, timeout=timeout)

    async def cancel(self) -> bool:
        """Cancel current build.

        Returns:
            True if a build was cancelled
        """
        if not self.is_building:
            return False

        self._cancel_requested = True
        self._kill_current()
        return True
