"""
Workspace boundary and path resolution.

The workspace is the sandbox: every file tool operates on a Resource that
has been resolved here and checked against the workspace roots. Models
produce paths in many shapes, so resolution is forgiving about the input
and strict about the output.
"""

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from toolgate.errors import ValidationError
from toolgate.types import Resource

logger = logging.getLogger(__name__)


class Workspace:
    """
    The set of root folders tools are allowed to touch.

    Symlinks are not resolved: a link inside a root that points outside of
    it is treated as inside. Containment is purely lexical, after ".."
    segments have been collapsed.
    """

    def __init__(self, roots: Iterable[str | Path | Resource]) -> None:
        self.roots: list[Resource] = [
            r if isinstance(r, Resource) else Resource.file(r) for r in roots
        ]

    @classmethod
    def from_cwd(cls) -> "Workspace":
        return cls([Path.cwd()])

    @property
    def primary_root(self) -> Resource | None:
        return self.roots[0] if self.roots else None

    def contains(self, resource: Resource) -> bool:
        return any(resource.is_relative_to(root) for root in self.roots)

    def root_for(self, resource: Resource) -> Resource | None:
        for root in self.roots:
            if resource.is_relative_to(root):
                return root
        return None

    def relative_path(self, resource: Resource) -> str:
        """Path of resource relative to its root, with forward slashes."""
        root = self.root_for(resource)
        if root is None:
            return resource.path
        rel = os.path.relpath(resource.path, root.path)
        return "" if rel == "." else rel.replace(os.sep, "/")

    def describe_roots(self) -> str:
        return ", ".join(r.path for r in self.roots) or "none"

    def resolve(self, uri_str: str) -> Resource:
        """
        Turn a model-supplied path or URI into an absolute Resource.

        Strings containing "://" are parsed as URIs. Relative paths are
        joined to the first root. Absolute paths that already sit under a
        root are kept; otherwise a leading "/<root name>" segment is
        treated as a mistake and stripped, so "/myproject/src/x" becomes
        "<root>/src/x". That last heuristic is a plain name match and can
        pick the wrong path when a project contains a top-level directory
        that shares the root's name.
        """
        if "://" in uri_str:
            try:
                return Resource.parse(uri_str)
            except ValueError as e:
                raise ValidationError(f"Invalid URI format: {uri_str}. Error: {e}") from e

        if not uri_str.startswith("/"):
            if self.roots:
                return self.roots[0].joinpath(uri_str)
            return Resource.file(os.sep + uri_str)

        resource = Resource.file(uri_str)
        for root in self.roots:
            if resource.is_relative_to(root):
                break
            prefix = f"/{root.name}"
            if uri_str == prefix or uri_str.startswith(prefix + "/"):
                relative = uri_str[len(prefix):].lstrip("/")
                logger.debug(f"Stripped workspace name from {uri_str!r}")
                return root.joinpath(relative) if relative else root
        return resource

    def resolve_inside(self, uri_str: str) -> Resource:
        """Resolve uri_str and fail unless the result lies inside a root."""
        resource = self.resolve(uri_str)
        if not self.contains(resource):
            raise ValidationError(
                f"File {resource} is outside the workspace and cannot be accessed. "
                f"Only files within the workspace are allowed for safety. "
                f"Current workspace: {self.describe_roots()}. "
                f"If this is a relative path, ensure it's relative to the workspace root."
            )
        return resource
