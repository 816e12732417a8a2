"""Tests for build output interpretation."""

import os
import time

import pytest

from dotnet_debug_bridge.build.output import (
    ArtifactSource,
    find_artifact_lines,
    interpret,
    parse_artifact_line,
    scan_output_directories,
    select_artifact_line,
)
from dotnet_debug_bridge.errors import ArtifactNotFound


def touch(path, mtime=None):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"MZ")
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


class TestParseArtifactLine:
    """Tests for single-line parsing."""

    def test_simple_line(self):
        """Test 'Name -> path' is split and trimmed."""
        parsed = parse_artifact_line("  App -> /x/bin/Debug/net8.0/App.dll  ")

        assert parsed.project_name == "App"
        assert parsed.path == "/x/bin/Debug/net8.0/App.dll"

    def test_node_prefix_stripped(self):
        """Test multi-node MSBuild prefixes are removed."""
        parsed = parse_artifact_line("12>WebApp -> C:\\src\\WebApp\\bin\\Debug\\net8.0\\WebApp.dll")

        assert parsed.project_name == "WebApp"

    def test_exe_suffix_case_insensitive(self):
        """Test .EXE is accepted."""
        assert parse_artifact_line("Tool -> /out/Tool.EXE") is not None

    @pytest.mark.parametrize(
        "line",
        [
            "Restore complete (0.4s)",
            "App -> /x/bin/Debug/net8.0/publish/",
            "App -> /x/bin/Debug/App.1.0.0.nupkg",
            " -> /x/App.dll",
            "App ->",
        ],
    )
    def test_non_artifact_lines(self, line):
        """Test lines without a usable binary path are ignored."""
        assert parse_artifact_line(line) is None


class TestSelectArtifactLine:
    """Tests for choosing among several artifact lines."""

    def test_startup_name_wins(self):
        """Test the startup project's line beats later lines."""
        lines = find_artifact_lines(
            [
                "WebApp -> /src/WebApp/bin/Debug/net8.0/WebApp.dll",
                "WebApp.Tests -> /src/WebApp.Tests/bin/Debug/net8.0/WebApp.Tests.dll",
            ]
        )

        assert select_artifact_line(lines, "WebApp").project_name == "WebApp"

    def test_last_line_without_startup(self):
        """Test the last line wins when no startup name is known."""
        lines = find_artifact_lines(["Lib -> /a/Lib.dll", "App -> /a/App.dll"])

        assert select_artifact_line(lines).project_name == "App"

    def test_last_line_when_startup_missing(self):
        """Test an unmatched startup name falls back to the last line."""
        lines = find_artifact_lines(["Lib -> /a/Lib.dll", "App -> /a/App.dll"])

        assert select_artifact_line(lines, "Other").project_name == "App"

    def test_empty(self):
        """Test no candidates yields None."""
        assert select_artifact_line([]) is None


class TestInterpretParsed:
    """Tests for the primary strategy."""

    def test_existing_parsed_path(self, tmp_path):
        """Test an existing parsed path is returned as parsed."""
        dll = touch(tmp_path / "bin" / "Debug" / "net8.0" / "App.dll")
        artifact = interpret([f"App -> {dll}"], str(tmp_path), startup_name="App")

        assert artifact.path == str(dll)
        assert artifact.source == ArtifactSource.PARSED

    def test_missing_parsed_path_without_fallback_is_returned(self, tmp_path):
        """Test the parsed path is kept when nothing is on disk to scan."""
        expected = os.path.normpath("/x/bin/Debug/net8.0/App.dll")
        artifact = interpret(["App -> /x/bin/Debug/net8.0/App.dll"], str(tmp_path))

        assert artifact.path == expected
        assert artifact.source == ArtifactSource.PARSED

    def test_relative_path_joined_to_project_root(self, tmp_path):
        """Test relative artifact paths resolve against the project root."""
        dll = touch(tmp_path / "bin" / "Debug" / "App.dll")
        artifact = interpret([f"App -> bin{os.sep}Debug{os.sep}App.dll"], str(tmp_path))

        assert artifact.path == str(dll)

    def test_missing_parsed_path_uses_fallback(self, tmp_path):
        """Test a stale parsed path defers to the directory scan."""
        dll = touch(tmp_path / "bin" / "Debug" / "net8.0" / "App.dll")
        artifact = interpret(
            ["App -> /elsewhere/bin/Debug/net8.0/App.dll"], str(tmp_path), startup_name="App"
        )

        assert artifact.path == str(dll)
        assert artifact.source == ArtifactSource.FALLBACK


class TestInterpretFallback:
    """Tests for the directory-scan strategy."""

    def test_no_lines_scans_output_directories(self, tmp_path):
        """Test an empty output still finds the binary on disk."""
        dll = touch(tmp_path / "bin" / "Debug" / "net8.0" / "App.dll")
        artifact = interpret([], str(tmp_path))

        assert artifact.path == str(dll)
        assert artifact.source == ArtifactSource.FALLBACK

    def test_reference_assemblies_skipped(self, tmp_path):
        """Test ref/ and refint/ outputs are never chosen."""
        now = time.time()
        dll = touch(tmp_path / "bin" / "Debug" / "net8.0" / "App.dll", now - 100)
        touch(tmp_path / "bin" / "Debug" / "net8.0" / "ref" / "App.dll", now)
        touch(tmp_path / "bin" / "Debug" / "net8.0" / "refint" / "App.dll", now)

        assert interpret([], str(tmp_path)).path == str(dll)

    def test_startup_stem_preferred_over_newer_dependency(self, tmp_path):
        """Test the startup binary beats a newer dependency."""
        now = time.time()
        app = touch(tmp_path / "bin" / "Debug" / "net8.0" / "App.dll", now - 100)
        touch(tmp_path / "bin" / "Debug" / "net8.0" / "Newtonsoft.Json.dll", now)

        assert scan_output_directories(str(tmp_path), "App") == str(app)

    def test_project_file_stem_preferred(self, tmp_path):
        """Test the project file name identifies the binary without a startup name."""
        now = time.time()
        (tmp_path / "Worker.csproj").write_text("<Project />")
        worker = touch(tmp_path / "bin" / "Debug" / "net6.0" / "Worker.dll", now - 100)
        touch(tmp_path / "bin" / "Debug" / "net6.0" / "Serilog.dll", now)

        assert scan_output_directories(str(tmp_path)) == str(worker)

    def test_most_recent_wins_among_equals(self, tmp_path):
        """Test mtime breaks ties between unpreferred files."""
        now = time.time()
        touch(tmp_path / "bin" / "Release" / "net8.0" / "Old.dll", now - 100)
        new = touch(tmp_path / "bin" / "Debug" / "net8.0" / "New.dll", now)

        assert scan_output_directories(str(tmp_path)) == str(new)

    def test_built_configuration_preferred(self, tmp_path):
        """Test the configuration that was built beats a newer binary from another one."""
        now = time.time()
        release = touch(tmp_path / "bin" / "Release" / "net8.0" / "App.dll", now - 100)
        touch(tmp_path / "bin" / "Debug" / "net8.0" / "App.dll", now)

        assert scan_output_directories(str(tmp_path), "App", configuration="Release") == str(release)
        assert interpret([], str(tmp_path), configuration="Release").path == str(release)

    def test_nothing_found_raises(self, tmp_path):
        """Test ArtifactNotFound carries the hint and the output tail."""
        with pytest.raises(ArtifactNotFound) as exc_info:
            interpret(["Build succeeded.", "    0 Warning(s)"], str(tmp_path))

        data = exc_info.value.to_dict()
        assert data["kind"] == "artifact_not_found"
        assert "Build succeeded." in data["output"]
        assert "bin/<Configuration>" in str(exc_info.value)

    def test_obj_directory_ignored(self, tmp_path):
        """Test intermediate outputs do not count as artifacts."""
        touch(tmp_path / "obj" / "Debug" / "net8.0" / "App.dll")

        with pytest.raises(ArtifactNotFound):
            interpret([], str(tmp_path))
