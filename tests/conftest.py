"""Pytest fixtures for dotnet-debug-bridge tests."""

import os
import sys
from unittest.mock import AsyncMock

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

CSHARP_SDK = "9A19103F-16F7-4668-BE54-9A1E7A4F7556"
SOLUTION_FOLDER = "2150E333-8FDC-42A3-9474-1A3956D46DE8"


def project_line(name: str, path: str, identity: str, kind: str = CSHARP_SDK) -> str:
    """Render one .sln project declaration."""
    return f'Project("{{{kind}}}") = "{name}", "{path}", "{{{identity}}}"\nEndProject'


@pytest.fixture
def webapp_solution_text():
    """Solution with an application and its test project, no startup declared."""
    return "\n".join(
        [
            "",
            "Microsoft Visual Studio Solution File, Format Version 12.00",
            "# Visual Studio Version 17",
            "VisualStudioVersion = 17.0.31903.59",
            project_line("WebApp.Tests", "tests\\WebApp.Tests\\WebApp.Tests.csproj",
                         "22222222-2222-2222-2222-222222222222"),
            project_line("WebApp", "src\\WebApp\\WebApp.csproj",
                         "11111111-1111-1111-1111-111111111111"),
            "Global",
            "\tGlobalSection(SolutionConfigurationPlatforms) = preSolution",
            "\t\tDebug|Any CPU = Debug|Any CPU",
            "\t\tDebug|x64 = Debug|x64",
            "\t\tRelease|Any CPU = Release|Any CPU",
            "\tEndGlobalSection",
            "\tGlobalSection(ProjectConfigurationPlatforms) = postSolution",
            "\t\t{11111111-1111-1111-1111-111111111111}.Debug|Any CPU.ActiveCfg = Debug|Any CPU",
            "\tEndGlobalSection",
            "EndGlobal",
            "",
        ]
    )


@pytest.fixture
def explicit_startup_solution_text():
    """Solution declaring its second project as the startup project."""
    return "\n".join(
        [
            "Microsoft Visual Studio Solution File, Format Version 12.00",
            project_line("Api", "Api\\Api.csproj", "AAAAAAAA-0000-0000-0000-000000000001"),
            project_line("Worker", "Worker\\Worker.csproj", "BBBBBBBB-0000-0000-0000-000000000002"),
            "Global",
            "\tGlobalSection(SolutionProperties) = preSolution",
            "\t\tHideSolutionNode = FALSE",
            "\t\tStartupProject = {bbbbbbbb-0000-0000-0000-000000000002}",
            "\tEndGlobalSection",
            "EndGlobal",
        ]
    )


@pytest.fixture
def slnx_text():
    """XML solution with a folder, two projects and explicit build types."""
    return """<Solution>
  <Configurations>
    <BuildType Name="Debug" />
    <BuildType Name="Release" />
    <BuildType Name="Staging" />
  </Configurations>
  <Folder Name="/tests/">
    <Project Path="tests/App.Tests/App.Tests.csproj" />
  </Folder>
  <Project Path="src/App/App.csproj" />
</Solution>
"""


@pytest.fixture
def solution_tree(tmp_path, webapp_solution_text):
    """On-disk WebApp solution with project directories."""
    (tmp_path / "WebApp.sln").write_text(webapp_solution_text, encoding="utf-8")
    web = tmp_path / "src" / "WebApp"
    web.mkdir(parents=True)
    (web / "WebApp.csproj").write_text("<Project Sdk=\"Microsoft.NET.Sdk.Web\" />")
    tests = tmp_path / "tests" / "WebApp.Tests"
    tests.mkdir(parents=True)
    (tests / "WebApp.Tests.csproj").write_text("<Project Sdk=\"Microsoft.NET.Sdk\" />")
    return tmp_path


@pytest.fixture
def sample_dap_response():
    """Sample DAP response data."""
    return {
        "seq": 1,
        "type": "response",
        "request_seq": 1,
        "success": True,
        "command": "initialize",
        "body": {
            "supportsConfigurationDoneRequest": True,
            "supportsExceptionInfoRequest": True,
        },
    }


@pytest.fixture
def sample_dap_event():
    """Sample DAP event data."""
    return {
        "seq": 2,
        "type": "event",
        "event": "output",
        "body": {"category": "stdout", "output": "Now listening on: http://localhost:5000\n"},
    }


def make_build_process(lines: list[bytes], returncode: int = 0) -> AsyncMock:
    """Mock asyncio subprocess whose merged stdout yields ``lines``."""
    process = AsyncMock()
    process.pid = 4242
    process.returncode = returncode
    process.stdout = AsyncMock()
    process.stdout.readline = AsyncMock(side_effect=[*lines, b""])
    process.wait = AsyncMock(return_value=returncode)
    process.kill = lambda: None
    return process
