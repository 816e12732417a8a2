"""Tests for build task interception and target location."""

import pytest

from dotnet_debug_bridge.build.policy import BuildPolicy
from dotnet_debug_bridge.scenario.tasks import (
    BuildTask,
    TargetKind,
    locate_build_target,
    rewrite_task,
    split_program_args,
    task_configuration,
)


class TestBuildTask:
    """Tests for BuildTask parsing."""

    def test_from_command_line(self):
        """Test shell-style splitting keeps quoted arguments together."""
        task = BuildTask.from_command_line('dotnet run --project "src/My App" -- --name "a b"', cwd="/w")

        assert task.command == "dotnet"
        assert task.args == ["run", "--project", "src/My App", "--", "--name", "a b"]
        assert task.subcommand == "run"

    def test_empty_command_line(self):
        """Test an empty command is rejected."""
        with pytest.raises(ValueError):
            BuildTask.from_command_line("   ")

    def test_no_subcommand(self):
        """Test option-only tasks have no verb."""
        assert BuildTask(command="dotnet", args=["--info"]).subcommand is None


class TestRewriteTask:
    """Tests for run-to-build rewriting."""

    def test_run_becomes_build(self):
        """Test a run task is rewritten into a build task."""
        rewrite = rewrite_task(BuildTask(command="dotnet", args=["run", "-c", "Debug"]))

        assert rewrite.intercepted
        assert rewrite.task.args == ["build", "-c", "Debug"]
        assert rewrite.program_args == ()

    def test_program_args_split(self):
        """Test arguments after -- go to the program."""
        rewrite = rewrite_task(
            BuildTask(command="dotnet", args=["run", "--project", "App", "--", "--port", "5000"])
        )

        assert rewrite.task.args == ["build", "App"]
        assert rewrite.program_args == ("--port", "5000")

    def test_project_option_becomes_positional(self):
        """Test --project X and --project=X turn into the build target."""
        spaced = rewrite_task(BuildTask(command="dotnet", args=["run", "-c", "Release", "--project", "App"]))
        inline = rewrite_task(BuildTask(command="dotnet", args=["run", "--project=App/App.csproj"]))

        assert spaced.task.args == ["build", "App", "-c", "Release"]
        assert inline.task.args == ["build", "App/App.csproj"]

    def test_rewritten_run_task_is_a_valid_build(self, tmp_path):
        """Test a run --project task renders a build command with a positional target."""
        (tmp_path / "App").mkdir()
        (tmp_path / "App" / "App.csproj").write_text("<Project />")
        rewrite = rewrite_task(BuildTask(command="dotnet", args=["run", "--project", "App/App.csproj"]))

        command = BuildPolicy(workspace_root=str(tmp_path)).get_build_command(
            rewrite.task.args[1:], cwd=str(tmp_path)
        )

        assert "--project" not in command
        assert command[:3] == ["dotnet", "build", str(tmp_path / "App" / "App.csproj")]

    def test_run_only_options_dropped(self):
        """Test launch profile and --no-build do not reach the build."""
        rewrite = rewrite_task(
            BuildTask(
                command="dotnet",
                args=["r", "-lp", "https", "--no-build", "--launch-profile=Dev", "-f", "net8.0"],
            )
        )

        assert rewrite.task.args == ["build", "-f", "net8.0"]

    def test_build_kept(self):
        """Test build tasks keep their options, including run-like ones."""
        rewrite = rewrite_task(BuildTask(command="/usr/bin/dotnet", args=["build", "All.sln", "--no-restore"]))

        assert rewrite.intercepted
        assert rewrite.task.args == ["build", "All.sln", "--no-restore"]

    def test_original_task_untouched(self):
        """Test rewriting returns a new task."""
        task = BuildTask(command="dotnet", args=["run"], cwd="/w", env={"A": "1"}, label="App")

        rewrite = rewrite_task(task)

        assert task.args == ["run"]
        assert rewrite.task.cwd == "/w"
        assert rewrite.task.env == {"A": "1"}
        assert rewrite.task.label == "App"

    @pytest.mark.parametrize(
        "command,args",
        [
            ("dotnet", ["test"]),
            ("dotnet", ["test", "--no-build"]),
            ("dotnet", ["publish", "-c", "Release"]),
            ("dotnet", ["--info"]),
            ("npm", ["run", "build"]),
        ],
    )
    def test_not_intercepted(self, command, args):
        """Test other tasks pass through unchanged."""
        task = BuildTask(command=command, args=args)

        rewrite = rewrite_task(task)

        assert not rewrite.intercepted
        assert rewrite.task is task

    @pytest.mark.parametrize(
        "args,expected",
        [
            (["-c", "Release"], "Release"),
            (["--configuration=Staging", "-f", "net8.0"], "Staging"),
            (["-c:Release"], "Release"),
            (["-f", "net8.0"], None),
            (["--", "-c", "Release"], None),
        ],
    )
    def test_task_configuration(self, args, expected):
        """Test the configuration a task builds is read from its options only."""
        assert task_configuration(args) == expected

    def test_split_without_separator(self):
        """Test no -- means no program arguments."""
        assert split_program_args(["-c", "Debug"]) == (["-c", "Debug"], [])


class TestLocateBuildTarget:
    """Tests for finding what a task builds."""

    def test_explicit_solution(self, tmp_path):
        """Test a .sln argument wins."""
        task = BuildTask(command="dotnet", args=["build", "All.sln", "-o", "out"], cwd=str(tmp_path))

        target = locate_build_target(task)

        assert target.kind == TargetKind.SOLUTION
        assert target.path == str(tmp_path / "All.sln")
        assert target.explicit

    def test_explicit_project_option(self, tmp_path):
        """Test --project names the project."""
        task = BuildTask(command="dotnet", args=["run", "--project", "src/App/App.csproj"], cwd=str(tmp_path))

        target = locate_build_target(task)

        assert target.kind == TargetKind.PROJECT
        assert target.path == str(tmp_path / "src" / "App" / "App.csproj")
        assert target.base_dir == str(tmp_path / "src" / "App")

    def test_project_directory(self, tmp_path):
        """Test a directory argument resolves to the project file inside it."""
        (tmp_path / "src" / "Api").mkdir(parents=True)
        (tmp_path / "src" / "Api" / "Api.csproj").write_text("<Project />")
        task = BuildTask(command="dotnet", args=["run", "--project=src/Api"], cwd=str(tmp_path))

        target = locate_build_target(task)

        assert target.kind == TargetKind.PROJECT
        assert target.path == str(tmp_path / "src" / "Api" / "Api.csproj")

    def test_option_values_not_targets(self, tmp_path):
        """Test option values are not mistaken for positional targets."""
        (tmp_path / "out").mkdir()
        (tmp_path / "App.csproj").write_text("<Project />")
        task = BuildTask(command="dotnet", args=["build", "-o", "out", "-c", "Debug"], cwd=str(tmp_path))

        target = locate_build_target(task)

        assert target.path == str(tmp_path / "App.csproj")
        assert not target.explicit

    def test_project_in_cwd_before_solution(self, tmp_path):
        """Test a project in the cwd beats a solution above it."""
        (tmp_path / "All.sln").write_text("")
        app = tmp_path / "App"
        app.mkdir()
        (app / "App.csproj").write_text("<Project />")
        task = BuildTask(command="dotnet", args=["build"], cwd=str(app))

        target = locate_build_target(task, boundary=str(tmp_path))

        assert target.kind == TargetKind.PROJECT

    def test_solution_found_upward(self, tmp_path):
        """Test a solution in an ancestor directory is found."""
        (tmp_path / "All.sln").write_text("")
        docs = tmp_path / "docs"
        docs.mkdir()
        task = BuildTask(command="dotnet", args=["build"], cwd=str(docs))

        target = locate_build_target(task, boundary=str(tmp_path))

        assert target.kind == TargetKind.SOLUTION
        assert target.path == str(tmp_path / "All.sln")
        assert not target.explicit

    def test_boundary_stops_search(self, tmp_path):
        """Test the search never leaves the workspace."""
        (tmp_path / "Outside.sln").write_text("")
        workspace = tmp_path / "ws"
        workspace.mkdir()
        task = BuildTask(command="dotnet", args=["build"], cwd=str(workspace))

        target = locate_build_target(task, boundary=str(workspace))

        assert target.kind == TargetKind.DIRECTORY
        assert target.path == str(workspace)
        assert target.base_dir == str(workspace)
