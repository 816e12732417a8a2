"""MCP Server for the .NET build-to-debug bridge."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import Context, FastMCP
from pydantic import AnyUrl

from .build import BuildSession
from .config import BridgeConfig, get_config
from .debugger import LAUNCH_SCHEMA, DebugSession, LaunchRequest
from .errors import BridgeError, ScenarioError
from .scenario import BuildTask, DebugScenario, DebugScenarioBuilder
from .solution import explain_startup, load_solution
from .utils.project import get_project_root

logger = logging.getLogger(__name__)

STATE_URI = "bridge://state"
OUTPUT_URI = "bridge://output"
LAUNCH_SCHEMA_URI = "bridge://launch-schema"


class Bridge:
    """Server-wide state: one workspace, one debug session, one scenario at a time."""

    def __init__(self, workspace_root: str, config: BridgeConfig):
        self.config = config
        self.debug_session = DebugSession(config.debugger_path, config.cache_dir)
        self.scenario: DebugScenario | None = None
        self._build_session = BuildSession(workspace_root)

    @property
    def workspace_root(self) -> str:
        return self._build_session.workspace_root

    @property
    def build_session(self) -> BuildSession:
        return self._build_session

    @property
    def scenario_running(self) -> bool:
        return self.scenario is not None and not self.scenario.is_finished

    def set_workspace_root(self, workspace_root: str) -> None:
        """Switch workspace; ignored while a build is running."""
        root = os.path.abspath(workspace_root)
        if root == self._build_session.workspace_root:
            return
        if self._build_session.is_building:
            logger.warning(f"Build in progress, keeping workspace {self.workspace_root}")
            return
        logger.info(f"Updating workspace root: {self.workspace_root} -> {root}")
        self._build_session = BuildSession(root)

    def resolve_path(self, path: str) -> str:
        """Resolve a path against the workspace; it must stay inside it.

        Raises:
            ValueError: If the path is outside the workspace
        """
        return self._build_session.policy.validate_target_path(path)

    def new_builder(self, config: BridgeConfig, launch: bool) -> DebugScenarioBuilder:
        return DebugScenarioBuilder(
            self._build_session,
            debugger=self.debug_session if launch else None,
            config=config,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "workspaceRoot": self.workspace_root,
            "config": self.config.to_dict(),
            "build": {
                "state": self._build_session.state.value,
                "lastResult": (
                    self._build_session.last_result.to_dict()
                    if self._build_session.last_result
                    else None
                ),
            },
            "scenario": self.scenario.to_dict() if self.scenario else None,
            "debug": self.debug_session.state.to_dict(),
        }


# Global bridge (single client mode)
_bridge: Bridge | None = None


def get_bridge() -> Bridge:
    """Get the bridge created by create_server()."""
    if _bridge is None:
        raise RuntimeError("Server not created")
    return _bridge


def _error(e: Exception) -> dict[str, Any]:
    if isinstance(e, BridgeError):
        return {"success": False, **e.to_dict()}
    return {"success": False, "error": str(e)}


def create_server(project_path: str | None = None, config: BridgeConfig | None = None) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        project_path: Initial workspace root. Client roots override it.
        config: Bridge settings (environment-derived if omitted)
    """
    global _bridge
    _bridge = Bridge(project_path or os.getcwd(), config or get_config())
    bridge = _bridge
    mcp = FastMCP("dotnet-debug-bridge")

    async def notify_state_changed(ctx: Context) -> None:
        """Notify client that bridge://state has changed."""
        try:
            if ctx.session:
                await ctx.session.send_resource_updated(AnyUrl(STATE_URI))
        except Exception:
            logger.debug("Resource update notification failed", exc_info=True)

    async def sync_workspace(ctx: Context) -> Path | None:
        root = await get_project_root(ctx)
        if root is not None:
            bridge.set_workspace_root(str(root))
        return root

    # ============== Solution Tools ==============

    @mcp.tool()
    async def parse_solution(ctx: Context, path: str) -> dict:
        """
        Parse a .sln or .slnx file and list its projects.

        Returns projects in declaration order (name, relative path, GUID identity,
        type GUID), the solution configurations, the declared startup project if
        any, and warnings for malformed project lines that were skipped.

        Args:
            path: Solution file, absolute or relative to the workspace root
        """
        try:
            await sync_workspace(ctx)
            solution = load_solution(bridge.resolve_path(path))
            return {"success": True, "data": solution.to_dict()}
        except Exception as e:
            return _error(e)

    @mcp.tool()
    async def resolve_startup_project(ctx: Context, path: str) -> dict:
        """
        Pick the project a debug session would launch from a solution.

        Rules, in order: the solution's declared StartupProject, the first
        executable project, the first non-test project, the first project.
        Test projects (names containing Test/Spec/Benchmark) are never chosen
        while another candidate exists.

        Args:
            path: Solution file, absolute or relative to the workspace root
        """
        try:
            await sync_workspace(ctx)
            solution = load_solution(bridge.resolve_path(path))
            return {"success": True, "data": explain_startup(solution).to_dict()}
        except Exception as e:
            return _error(e)

    # ============== Debug Tools ==============

    @mcp.tool()
    async def debug_task(
        ctx: Context,
        command: str,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        label: str | None = None,
        configuration: str | None = None,
        stop_at_entry: bool | None = None,
        launch: bool = True,
    ) -> dict:
        """
        Debug a build task such as "dotnet run --project src/App -- --port 5000".

        The task is rewritten into "dotnet build", the startup project is
        resolved, the build runs, the produced .dll/.exe is located, and the
        debugger launches it. Arguments after "--" are passed to the program.
        Only dotnet run/build tasks can be debugged.

        Args:
            command: Task command line
            cwd: Task working directory (default: workspace root)
            env: Environment variables for the build and the program
            label: Name for the debug session
            configuration: Build configuration (default: Debug)
            stop_at_entry: Stop at the program entry point
            launch: Start the debugger; False only builds and returns the launch request
        """
        try:
            await sync_workspace(ctx)
            if bridge.scenario_running:
                return {"success": False, "error": "A debug scenario is already running"}

            task = BuildTask.from_command_line(
                command,
                cwd=bridge.resolve_path(cwd) if cwd else bridge.workspace_root,
                env=env,
                label=label,
            )
            config = bridge.config.with_overrides(
                configuration=configuration, stop_at_entry=stop_at_entry
            )
            scenario = bridge.new_builder(config, launch).create(task)
            if scenario is None:
                return {
                    "success": False,
                    "error": f"Task is not a dotnet run/build task: {command}",
                }
            bridge.scenario = scenario
        except Exception as e:
            return _error(e)

        try:
            await scenario.run()
            return {"success": True, "data": scenario.to_dict()}
        except ScenarioError as e:
            return {**_error(e), "data": scenario.to_dict()}
        except Exception as e:
            logger.exception("Debug scenario error")
            return _error(e)
        finally:
            await notify_state_changed(ctx)

    @mcp.tool()
    async def launch_debug(ctx: Context, configuration: dict[str, Any]) -> dict:
        """
        Start the debugger from a launch configuration, without building.

        The configuration uses the coreclr launch.json keys: "request"
        ("launch" or "attach", default launch), "program", "cwd", "args",
        "env", "stopAtEntry", "console" (default integratedTerminal) and
        "processId" for attach.

        Args:
            configuration: Launch configuration object
        """
        try:
            await sync_workspace(ctx)
            request = LaunchRequest.from_configuration(configuration)
            if request.program:
                request.program = bridge.resolve_path(request.program)
            result = await bridge.debug_session.start(request)
            await notify_state_changed(ctx)
            return {"success": True, "data": result}
        except Exception as e:
            return _error(e)

    @mcp.tool()
    async def cancel_debug(ctx: Context) -> dict:
        """Cancel the running debug scenario, killing its build."""
        try:
            scenario = bridge.scenario
            cancelled = scenario is not None and await scenario.cancel()
            await notify_state_changed(ctx)
            return {"success": True, "data": {"cancelled": cancelled}}
        except Exception as e:
            return _error(e)

    @mcp.tool()
    async def stop_debug(ctx: Context) -> dict:
        """Stop the current debug session and its debuggee."""
        try:
            result = await bridge.debug_session.stop()
            await notify_state_changed(ctx)
            return {"success": True, "data": result}
        except Exception as e:
            return _error(e)

    @mcp.tool()
    async def get_bridge_state() -> dict:
        """
        Get the bridge state: workspace root, settings, last build, the current
        scenario (resolved project, artifact, launch request or failure) and the
        debug session.
        """
        return {"success": True, "data": bridge.to_dict()}

    # ============== Resources ==============

    @mcp.resource(STATE_URI, mime_type="application/json")
    async def bridge_state_resource() -> str:
        """Bridge state (JSON). Updates when a scenario or debug session changes."""
        return json.dumps(bridge.to_dict(), indent=2)

    @mcp.resource(OUTPUT_URI, mime_type="text/plain")
    async def bridge_output_resource() -> str:
        """Debuggee console output (plain text)."""
        return "".join(bridge.debug_session.get_output())

    @mcp.resource(LAUNCH_SCHEMA_URI, mime_type="application/json")
    async def launch_schema_resource() -> str:
        """JSON schema of the configuration accepted by launch_debug."""
        return json.dumps(LAUNCH_SCHEMA, indent=2)

    logger.info("dotnet-debug-bridge server initialized")
    return mcp
