"""Entry point for the dotnet-debug-bridge server."""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from .config import configure_bridge, load_config
from .server import create_server, get_bridge
from .utils.project import configure_project_root, find_dotnet_project_root


def configure_logging() -> None:
    """Configure logging based on environment."""
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    """Create the command line parser."""
    parser = argparse.ArgumentParser(
        prog="dotnet-debug-bridge",
        description="Build-to-debug bridge for .NET - turns dotnet run/build tasks "
        "into debugger launch requests, served over MCP",
    )
    parser.add_argument(
        "--project",
        type=str,
        default=None,
        help="Workspace root. Builds and launched programs must stay inside it.",
    )
    parser.add_argument(
        "--project-from-cwd",
        action="store_true",
        default=False,
        help="Auto-detect the workspace from the current directory by searching "
        "upward for .sln/.slnx, project files or .git. Cannot be used with --project.",
    )
    parser.add_argument(
        "--debugger",
        type=str,
        default=None,
        help="Path to the vsdbg or netcoredbg executable (skips discovery).",
    )
    parser.add_argument(
        "--configuration",
        "-c",
        type=str,
        default=None,
        help="Build configuration used when a task does not set one (default: Debug).",
    )
    parser.add_argument(
        "--no-restore",
        action="store_true",
        default=False,
        help="Pass --no-restore to every build.",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    return build_parser().parse_args(argv)


async def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    configure_logging()
    logger = logging.getLogger(__name__)

    args = parse_args(argv)

    if args.project_from_cwd and args.project is not None:
        logger.error("--project-from-cwd cannot be used with --project")
        sys.exit(1)

    startup_cwd = Path.cwd()
    configure_project_root(
        use_project_from_cwd=args.project_from_cwd,
        explicit_project_path=args.project,
        startup_cwd=startup_cwd,
    )
    if args.project_from_cwd:
        project_path = str(find_dotnet_project_root(startup_cwd))
        logger.info(f"Auto-detected project root: {project_path}")
    else:
        project_path = args.project or str(startup_cwd)

    try:
        config = load_config().with_overrides(
            debugger_path=args.debugger,
            configuration=args.configuration,
            restore=False if args.no_restore else None,
        )
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)
    configure_bridge(config)

    logger.info(f"Starting dotnet-debug-bridge (project: {project_path})...")
    mcp = create_server(project_path, config)

    try:
        await mcp.run_stdio_async()
    except Exception:
        logger.exception("Server error")
        raise
    finally:
        bridge = get_bridge()
        if bridge.scenario is not None:
            await bridge.scenario.cancel()
        if bridge.debug_session.is_active:
            await bridge.debug_session.stop()
        logger.info("Server stopped")


def run() -> None:
    """Run the server."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
