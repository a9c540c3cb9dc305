"""Tests for workspace path resolution and the sandbox boundary."""

import os

import pytest

from toolgate.errors import ValidationError
from toolgate.types import Resource
from toolgate.workspace import Workspace


class TestResolve:
    """Tests for Workspace.resolve."""

    def test_relative_path_joins_first_root(self, workspace, project):
        """Relative paths are resolved against the first root."""
        resource = workspace.resolve("src/app.py")
        assert resource == Resource.file(project / "src" / "app.py")

    def test_absolute_path_inside_root_is_kept(self, workspace, project):
        """Absolute paths already under a root are used as-is."""
        path = str(project / "src" / "util.py")
        assert workspace.resolve(path).path == path

    def test_root_name_prefix_is_stripped(self, workspace, project):
        """"/proj/src/app.py" is treated as a mistaken workspace-relative path."""
        resource = workspace.resolve("/proj/src/app.py")
        assert resource.path == str(project / "src" / "app.py")

    def test_root_name_alone_resolves_to_root(self, workspace, project):
        """"/proj" alone names the root itself."""
        assert workspace.resolve("/proj").path == str(project)

    def test_dotdot_segments_are_collapsed(self, workspace, project):
        """".." segments are normalized before any containment check."""
        resource = workspace.resolve("src/../docs/guide.md")
        assert resource.path == str(project / "docs" / "guide.md")

    def test_file_uri_is_parsed(self, workspace, project):
        """file:// URIs become local resources."""
        uri = f"file://{project}/README.md"
        assert workspace.resolve(uri) == Resource.file(project / "README.md")

    def test_other_scheme_keeps_authority(self, workspace):
        """Non-file URIs keep scheme and authority."""
        resource = workspace.resolve("vscode-remote://host/x/y")
        assert resource.scheme == "vscode-remote"
        assert resource.authority == "host"
        assert resource.path == "/x/y"


class TestResolveInside:
    """Tests for the sandbox check."""

    def test_outside_path_is_rejected(self, workspace):
        """Absolute paths outside every root fail with the roots named."""
        with pytest.raises(ValidationError) as exc_info:
            workspace.resolve_inside("/etc/passwd")
        message = str(exc_info.value)
        assert "/etc/passwd" in message
        assert "outside the workspace" in message
        assert workspace.describe_roots() in message

    def test_dotdot_escape_is_rejected(self, workspace):
        """Relative paths cannot climb out of the root."""
        with pytest.raises(ValidationError):
            workspace.resolve_inside("../../etc/passwd")

    def test_remote_scheme_is_rejected(self, workspace, project):
        """A different scheme never counts as inside, even with a matching path."""
        with pytest.raises(ValidationError):
            workspace.resolve_inside(f"vscode-remote://host{project}/README.md")

    def test_sibling_with_shared_prefix_is_rejected(self, tmp_path, workspace):
        """"/tmp/proj-other" is not inside "/tmp/proj"."""
        sibling = tmp_path / "proj-other" / "x.txt"
        with pytest.raises(ValidationError):
            workspace.resolve_inside(str(sibling))

    def test_inside_paths_succeed(self, workspace, project):
        """Relative, absolute and root-name-prefixed forms all resolve inside."""
        expected = Resource.file(project / "src" / "app.py")
        for form in ("src/app.py", str(project / "src" / "app.py"), "/proj/src/app.py"):
            assert workspace.resolve_inside(form) == expected

    def test_multiple_roots(self, tmp_path, project):
        """A path under the second root is inside."""
        other = tmp_path / "other"
        other.mkdir()
        ws = Workspace([project, other])
        resource = ws.resolve_inside(str(other / "file.txt"))
        assert ws.root_for(resource) == Resource.file(other)

    def test_no_roots_rejects_everything(self):
        """An empty workspace accepts nothing."""
        ws = Workspace([])
        with pytest.raises(ValidationError) as exc_info:
            ws.resolve_inside("a.txt")
        assert "none" in str(exc_info.value)


class TestRelativePath:
    """Tests for Workspace.relative_path."""

    def test_relative_path_uses_forward_slashes(self, workspace, project):
        """Paths are reported relative to their root."""
        resource = Resource.file(project / "src" / "app.py")
        assert workspace.relative_path(resource) == "src/app.py"

    def test_root_is_empty_string(self, workspace, project):
        """The root itself is ""."""
        assert workspace.relative_path(Resource.file(project)) == ""

    def test_outside_resource_keeps_absolute_path(self, workspace):
        """Resources outside every root keep their absolute path."""
        resource = Resource.file(os.sep + "elsewhere")
        assert workspace.relative_path(resource) == resource.path
