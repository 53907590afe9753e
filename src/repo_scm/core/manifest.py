"""Manifest resolution: turn a repo.xml document into a Snapshot.

A manifest looks like::

    <manifest>
      <default branch="develop" fetch="https://git.example.com/group/" />
      <project origin="https://git.example.com/group/app.git" branch="main">
        <include module="docs" />
      </project>
      <module name="core" local="libs" origin="../core.git" />
      <module name="docs" origin="git@git.example.com:group/docs.git" />
    </manifest>

Relative origins start with ``.`` and are resolved against the project origin
the way git resolves relative submodule URLs: the project repository is the
directory the reference starts from, so ``../core`` is a sibling repository.
Modules named by an ``<include module=...>`` element of the project are
skipped and are not part of the resolved snapshot.
"""

import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import List, Optional, Tuple, Union
from urllib.parse import urljoin, urlsplit

from repo_scm.core.git_helper import GitHelper
from repo_scm.core.logging import get_logger
from repo_scm.exceptions import ManifestError
from repo_scm.models.module import ModuleCache
from repo_scm.models.snapshot import PROJECT_PATH, Snapshot

MANIFEST_NAME = "repo.xml"
DEFAULT_BRANCH = "master"
GIT_SUFFIX = ".git"

ABSOLUTE_SCHEMES = ("http", "https", "ssh", "git", "file")

# scp-like ssh origin: user@host:path
_SCP_LIKE = re.compile(r"^[\w.+-]+@[\w.-]+:")

# only used as a scheme/authority so urljoin resolves a bare path
_PLACEHOLDER = "http://placeholder"

log = get_logger("manifest")


def is_scp_like(origin: str) -> bool:
    return "://" not in origin and bool(_SCP_LIKE.match(origin))


def is_absolute_origin(origin: str) -> bool:
    """Check if ``origin`` is a full repository URL rather than a relative reference."""
    if is_scp_like(origin):
        return True
    try:
        parts = urlsplit(origin)
    except ValueError:
        return False
    return parts.scheme in ABSOLUTE_SCHEMES and origin.startswith(f"{parts.scheme}://")


def split_origin(origin: str) -> Tuple[str, str]:
    """Split an absolute origin into its authority prefix and its path.

    For scp-like origins the authority is everything before the first ``:``
    and the prefix keeps that colon.
    """
    if is_scp_like(origin):
        authority, _, path = origin.partition(":")
        return authority + ":", path

    try:
        parts = urlsplit(origin)
    except ValueError as e:
        raise ManifestError(f"Origin [{origin}] is not a valid URL: {e}") from e

    if parts.scheme not in ABSOLUTE_SCHEMES:
        raise ManifestError(
            f"Origin [{origin}] has unsupported scheme [{parts.scheme}]"
        )
    if not parts.netloc and parts.scheme != "file":
        raise ManifestError(f"Origin [{origin}] has no host")
    if parts.query or parts.fragment:
        raise ManifestError(f"Origin [{origin}] must not have a query or fragment")

    return f"{parts.scheme}://{parts.netloc}", "/" + parts.path.lstrip("/")


def _is_rooted(origin: str, path: str) -> bool:
    """URL paths are always absolute; scp-like paths may be relative to the login directory."""
    return not is_scp_like(origin) or path.startswith("/")


def _resolve_path(base_path: str, reference: str, rooted: bool) -> str:
    """RFC 3986 resolution of ``reference`` against ``base_path`` treated as a directory."""
    base = "/" + base_path.strip("/")
    if not base.endswith("/"):
        base += "/"
    resolved = urlsplit(urljoin(_PLACEHOLDER + base, reference)).path
    return resolved if rooted else resolved.lstrip("/")


def _climb_depth(reference: str) -> int:
    """Deepest number of directories ``reference`` climbs above its starting point."""
    depth = deepest = 0
    for segment in reference.split("/"):
        if segment == "..":
            depth += 1
            deepest = max(deepest, depth)
        elif segment not in ("", "."):
            depth -= 1
    return deepest


def _normalize_path(path: str, rooted: bool) -> str:
    resolved = urlsplit(urljoin(_PLACEHOLDER + "/", "/" + path.lstrip("/"))).path
    resolved = resolved.rstrip("/")
    return resolved if rooted else resolved.lstrip("/")


def _ensure_git_suffix(url: str) -> str:
    return url if url.endswith(GIT_SUFFIX) else url + GIT_SUFFIX


def normalize_origin(origin: str) -> str:
    """Collapse ``.``/``..`` segments of an absolute origin and ensure a ``.git`` suffix."""
    if not is_absolute_origin(origin):
        raise ManifestError(f"Origin [{origin}] is not an absolute repository URL")

    prefix, path = split_origin(origin)
    path = _normalize_path(path, _is_rooted(origin, path))
    if not path.strip("/"):
        raise ManifestError(f"Origin [{origin}] has no repository path")
    return _ensure_git_suffix(prefix + path)


def resolve_relative_origin(base_origin: str, relative: str) -> str:
    """Resolve a relative origin such as ``../lib.git`` against ``base_origin``."""
    if not relative.startswith("."):
        raise ManifestError(
            f"Relative origin [{relative}] must start with './' or '../'"
        )
    if relative.endswith(GIT_SUFFIX):
        relative = relative[: -len(GIT_SUFFIX)]

    prefix, base_path = split_origin(base_origin)
    if _climb_depth(relative) > len([s for s in base_path.split("/") if s]):
        raise ManifestError(
            f"Relative origin [{relative}] escapes the host of [{base_origin}]"
        )
    path = _resolve_path(
        base_path, relative, _is_rooted(base_origin, base_path)
    ).rstrip("/")
    if not path.strip("/"):
        raise ManifestError(
            f"Relative origin [{relative}] escapes the host of [{base_origin}]"
        )
    return _ensure_git_suffix(prefix + path)


def module_path(local: str, name: str) -> str:
    """Workspace-relative path of a module: ``local`` (default ``./``) joined with ``name``."""
    local = local or PROJECT_PATH
    if local.endswith("/"):
        return local + name
    return local + "/" + name


def _attr(element: Optional[ET.Element], name: str) -> str:
    if element is None:
        return ""
    return (element.get(name) or "").strip()


def _elements(root: ET.Element, tag: str) -> List[ET.Element]:
    return list(root.iter(tag))


def _single(root: ET.Element, tag: str, required: bool) -> Optional[ET.Element]:
    elements = _elements(root, tag)
    if len(elements) > 1:
        raise ManifestError(f"There are multiple <{tag} /> elements")
    if not elements:
        if required:
            raise ManifestError(f"Manifest has no <{tag} /> element")
        return None
    return elements[0]


def _parse(document: Union[str, bytes]) -> ET.Element:
    try:
        return ET.fromstring(document)
    except (ET.ParseError, ValueError) as e:
        raise ManifestError(f"Manifest is not well-formed XML: {e}") from e


class ManifestResolver:
    """Resolves manifests into Snapshots of cached ModuleRecords."""

    def __init__(
        self,
        git_helper: Optional[GitHelper] = None,
        cache: Optional[ModuleCache] = None,
    ):
        self.git_helper = git_helper or GitHelper()
        self.cache = cache if cache is not None else ModuleCache()

    def resolve_file(
        self,
        working_directory: Path,
        manifest_name: str = MANIFEST_NAME,
        include_revisions: bool = False,
    ) -> Snapshot:
        """Read ``manifest_name`` from the workspace and resolve it."""
        manifest_file = Path(working_directory) / manifest_name
        if not manifest_file.is_file():
            raise ManifestError(f"Manifest file not found: {manifest_file}")
        return self.resolve(
            manifest_file.read_bytes(), working_directory, include_revisions
        )

    def resolve(
        self,
        document: Union[str, bytes],
        working_directory: Path,
        include_revisions: bool = False,
    ) -> Snapshot:
        """Resolve a manifest document.

        When ``include_revisions`` is set, the current revision of every
        working copy that exists and is a git repository is recorded; other
        records keep ``revision=None``.
        """
        working_directory = Path(working_directory)
        root = _parse(document)

        defaults = _single(root, "default", required=False)
        project_element = _single(root, "project", required=True)
        default_branch = _attr(defaults, "branch")
        default_fetch = _attr(defaults, "fetch")

        project_origin = self._project_origin(
            _attr(project_element, "origin"), default_fetch
        )
        branch = _attr(project_element, "branch") or default_branch or DEFAULT_BRANCH

        snapshot = Snapshot(branch=branch)
        snapshot.project = self.cache.intern(
            PROJECT_PATH,
            project_origin,
            branch,
            self._revision(working_directory, include_revisions),
        )
        log.debug("project", origin=project_origin, branch=branch)

        excluded = {
            _attr(element, "module") for element in project_element.iter("include")
        }
        excluded.discard("")

        for element in _elements(root, "module"):
            name = _attr(element, "name")
            if not name:
                raise ManifestError("<module /> element [name] is not set")
            if name in excluded:
                log.debug("module excluded", name=name)
                continue

            path = module_path(_attr(element, "local"), name)
            if path == PROJECT_PATH or path in snapshot.modules:
                raise ManifestError(f"Module path [{path}] is declared more than once")

            origin = self._module_origin(name, _attr(element, "origin"), project_origin)
            module_branch = (
                _attr(element, "branch") or default_branch or branch or DEFAULT_BRANCH
            )
            revision = self._revision(working_directory / path, include_revisions)

            snapshot.add_module(self.cache.intern(path, origin, module_branch, revision))
            log.debug(
                "module",
                name=name,
                path=path,
                origin=origin,
                branch=module_branch,
                revision=revision,
            )

        return snapshot

    def _project_origin(self, origin: str, default_fetch: str) -> str:
        if not origin:
            raise ManifestError("<project /> element [origin] is not set")
        if is_absolute_origin(origin):
            return normalize_origin(origin)
        if not default_fetch:
            raise ManifestError(
                "<project /> element [origin] is relative but <default /> has no [fetch]"
            )
        return resolve_relative_origin(normalize_fetch(default_fetch), origin)

    def _module_origin(self, name: str, origin: str, project_origin: str) -> str:
        if not origin:
            raise ManifestError(f"<module name=\"{name}\" /> element [origin] is not set")
        if is_absolute_origin(origin):
            return normalize_origin(origin)
        return resolve_relative_origin(project_origin, origin)

    def _revision(self, path: Path, include_revisions: bool) -> Optional[str]:
        if not include_revisions:
            return None
        if self.git_helper.exists(path) and self.git_helper.is_repository(path):
            return self.git_helper.current_revision(path)
        return None


def normalize_fetch(fetch: str) -> str:
    """Validate a ``<default fetch=...>`` base; unlike origins it gets no ``.git`` suffix."""
    if not is_absolute_origin(fetch):
        raise ManifestError(f"<default /> element [fetch] is not a valid URL: {fetch}")
    prefix, path = split_origin(fetch)
    return prefix + _normalize_path(path, _is_rooted(fetch, path))


def resolve_manifest(
    document: Union[str, bytes],
    working_directory: Path,
    include_revisions: bool,
    git_helper: Optional[GitHelper] = None,
    cache: Optional[ModuleCache] = None,
) -> Snapshot:
    """Resolve ``document`` with a one-off resolver."""
    return ManifestResolver(git_helper, cache).resolve(
        document, working_directory, include_revisions
    )
