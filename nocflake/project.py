"""Inspection of a Cargo project: manifests, dependency sources and flake inputs."""

from __future__ import annotations

import glob
import sys
import tomllib
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .flakeref import FlakeRefError, git_url_to_flake_ref

__all__ = [
    "ProjectError",
    "GitRefKind",
    "GitRef",
    "SourceKind",
    "DepSource",
    "Products",
    "FlakeInputs",
    "load_manifest",
    "read_lock_version",
    "get_workspace_members",
    "iter_dependencies",
    "analyze_project",
    "locate_project",
]

Manifest = dict[str, Any]

_DEP_SECTIONS = (
    ("dependencies",),
    ("dev-dependencies", "dev_dependencies"),
    ("build-dependencies", "build_dependencies"),
)

_OLD_LOCK_WARNING = (
    "warning: Cargo.lock is generated by cargo < 1.53.0.\n"
    "The old lock format is supported but encodes git URLs in a different way,\n"
    "which results in different `gitSrcs` arguments when calling "
    "`mkRustPackageOrWorkspace`.\n"
    "We recommend to regenerate the lock via `cargo update` with cargo >= 1.53.0 "
    "and retry."
)


class ProjectError(Exception):
    """The project cannot be described as a flake."""


@contextmanager
def _context(message: str) -> Iterator[None]:
    """Re-raise failures inside the block as ProjectError prefixed by ``message``."""
    try:
        yield
    except (ProjectError, FlakeRefError, OSError) as exc:
        raise ProjectError(f"{message}: {exc}") from exc


class GitRefKind(Enum):
    NOT_SPECIFIED = "not-specified"
    TAG = "tag"
    BRANCH = "branch"
    REV = "rev"


@dataclass(frozen=True)
class GitRef:
    """Which commit of a git dependency is wanted."""

    kind: GitRefKind = GitRefKind.NOT_SPECIFIED
    name: str | None = None


class SourceKind(Enum):
    CRATES_IO = "crates-io"
    REGISTRY_NAME = "registry"
    REGISTRY_URL = "registry-index"
    PATH = "path"
    GIT = "git"


_SOURCE_KEYS = (
    (SourceKind.REGISTRY_NAME, "registry"),
    (SourceKind.REGISTRY_URL, "registry-index"),
    (SourceKind.PATH, "path"),
    (SourceKind.GIT, "git"),
)

_GIT_REF_KEYS = (
    (GitRefKind.BRANCH, "branch"),
    (GitRefKind.TAG, "tag"),
    (GitRefKind.REV, "rev"),
)


@dataclass(frozen=True)
class DepSource:
    """Where a dependency comes from.

    ``value`` holds the registry name, registry URL, local path or git URL,
    depending on ``kind``.
    """

    kind: SourceKind
    value: str | None = None
    git_ref: GitRef | None = None

    @classmethod
    def from_dependency(cls, dep: Any) -> DepSource:
        """Classify a dependency specification taken from a manifest."""
        if isinstance(dep, str):
            return cls(SourceKind.CRATES_IO)
        if not isinstance(dep, Mapping):
            raise ProjectError(f"Invalid dependency specification: {dep!r}")

        sources = [(kind, dep[key]) for kind, key in _SOURCE_KEYS if key in dep]
        if not sources:
            return cls(SourceKind.CRATES_IO)
        if len(sources) > 1:
            raise ProjectError(
                "Only one of `registry`, `registry-index`, `path`, `git` "
                f"can be specified: {dict(dep)!r}"
            )
        [(kind, value)] = sources
        if kind is not SourceKind.GIT:
            return cls(kind, value)

        refs = [(ref_kind, dep[key]) for ref_kind, key in _GIT_REF_KEYS if key in dep]
        if len(refs) > 1:
            raise ProjectError(
                "For git dependency, at most one of `branch`, `rev` and `tag` is allowed"
            )
        git_ref = GitRef(*refs[0]) if refs else GitRef()
        return cls(kind, value, git_ref)


def _has_product(
    root: Path,
    decls: list[Any],
    allow_discover: bool,
    extra_path: str | None,
    convention_dir: str,
) -> bool:
    if decls:
        return True
    if allow_discover:
        return False
    if extra_path is not None and (root / extra_path).is_file():
        return True
    directory = root / convention_dir
    with _context(f"Failed to read directory {directory}"):
        entries = list(directory.iterdir())
    return any(
        (entry.is_file() and entry.suffix == ".rs")
        or (entry.is_dir() and (entry / "main.rs").is_file())
        for entry in entries
    )


@dataclass(frozen=True)
class Products:
    """Which kinds of build targets a package provides."""

    library: bool
    binary: bool
    bench: bool
    test: bool
    example: bool

    @classmethod
    def from_manifest(cls, root: str | Path, manifest: Manifest) -> Products:
        """Work out the targets of the package whose manifest lies in ``root``."""
        root = Path(root)
        package = manifest.get("package")
        if package is None:
            raise ProjectError("Missing [package]")
        bins = manifest.get("bin", [])
        return cls(
            library="lib" in manifest or (root / "src" / "lib.rs").exists(),
            binary=_has_product(
                root, bins, package.get("autobins", True), "src/main.rs", "src/bin"
            ),
            bench=_has_product(
                root, bins, package.get("autobenches", True), None, "benches"
            ),
            test=_has_product(
                root, manifest.get("test", []), package.get("autotests", True), None, "tests"
            ),
            example=_has_product(
                root,
                manifest.get("example", []),
                package.get("autoexamples", True),
                None,
                "examples",
            ),
        )


@dataclass
class FlakeInputs:
    """What the generated flake needs to know about the project.

    ``registries`` and ``git_srcs`` map source ids to flake references.
    """

    is_workspace: bool = False
    main_pkg: tuple[str, Products] | None = None
    registries: dict[str, str] = field(default_factory=dict)
    git_srcs: dict[str, str] = field(default_factory=dict)

    def check_dependency(
        self,
        dep: Any,
        lock_version: int,
        on_local_dep: Callable[[Path], None],
    ) -> None:
        """Record the flake inputs ``dep`` requires, or raise if it is unsupported.

        ``on_local_dep`` is called with the path of a path dependency and
        raises if such a dependency is not acceptable.
        """
        source = DepSource.from_dependency(dep)
        match source.kind:
            case SourceKind.CRATES_IO:
                pass
            case SourceKind.REGISTRY_NAME:
                raise ProjectError(
                    f'External registry with name "{source.value}" is not supported'
                )
            case SourceKind.PATH:
                on_local_dep(Path(source.value))
            case SourceKind.REGISTRY_URL:
                self.registries[source.value] = git_url_to_flake_ref(source.value)
            case SourceKind.GIT:
                self._add_git_source(source.value, source.git_ref or GitRef(), lock_version)

    def _add_git_source(self, url: str, git_ref: GitRef, lock_version: int) -> None:
        match git_ref.kind:
            case GitRefKind.TAG:
                source_url = f"{url}?tag={git_ref.name}"
            case GitRefKind.BRANCH if lock_version >= 3:
                source_url = f"{url}?branch={git_ref.name}"
            case GitRefKind.REV:
                source_url = f"{url}?rev={git_ref.name}"
            case _:
                source_url = url

        is_named = git_ref.kind in (GitRefKind.TAG, GitRefKind.BRANCH)
        ref_name = git_ref.name if is_named else None
        rev = git_ref.name if git_ref.kind is GitRefKind.REV else None
        self.git_srcs[source_url] = git_url_to_flake_ref(url, ref_name, rev)


def load_manifest(path: str | Path) -> Manifest:
    """Read and parse a ``Cargo.toml``."""
    path = Path(path)
    try:
        with path.open("rb") as f:
            manifest = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
        raise ProjectError(f"{path}: {exc}") from exc
    package = manifest.get("package")
    if package is not None and not isinstance(package.get("name"), str):
        raise ProjectError(f"{path}: missing field `name` in [package]")
    return manifest


def read_lock_version(path: str | Path) -> int:
    """Return the format version of a ``Cargo.lock``; 2 when it names none."""
    try:
        with Path(path).open("rb") as f:
            lock = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
        raise ProjectError(f"Parse Cargo.lock: {exc}") from exc
    version = lock.get("version")
    if isinstance(version, int) and not isinstance(version, bool):
        return version
    return 2


def get_workspace_members(root: str | Path, members: list[str]) -> list[Path]:
    """Expand the workspace member patterns relative to ``root``."""
    root = Path(root)
    found: list[Path] = []
    for member in members:
        pattern = str(root / member)
        found.extend(Path(p) for p in sorted(glob.glob(pattern)))
    return found


def _section_items(table: Mapping[str, Any]) -> Iterator[tuple[str, Any]]:
    for keys in _DEP_SECTIONS:
        merged: dict[str, Any] = {}
        for key in keys:
            merged.update(table.get(key) or {})
        yield from sorted(merged.items())


def iter_dependencies(manifest: Manifest) -> Iterator[tuple[str, Any]]:
    """Yield ``(name, spec)`` for every dependency, target-specific ones last."""
    yield from _section_items(manifest)
    for _, target in sorted((manifest.get("target") or {}).items()):
        yield from _section_items(target)


def _reject_local(path: Path) -> None:
    raise ProjectError(f"Local dependency is not supported for non-workspace: {path}")


def _check_workspace(
    inputs: FlakeInputs,
    root: Path,
    manifest: Manifest,
    workspace: Mapping[str, Any],
    lock_version: int,
) -> None:
    members = workspace.get("members") or []
    if not members:
        raise ProjectError(
            "[workspace] without explicit `members` declarations are not supported yet"
        )

    member_roots = get_workspace_members(root, members)
    with _context("Failed to resolve workspace members"):
        absolute_roots = {p.resolve(strict=True) for p in member_roots}
    if len(absolute_roots) != len(member_roots):
        raise ProjectError("Duplicated workspace members")

    projects: list[tuple[Path, Manifest]] = []
    for member_root in member_roots:
        manifest_path = member_root / "Cargo.toml"
        with _context(f"Failed to load member Cargo.toml at {manifest_path}"):
            projects.append((member_root, load_manifest(manifest_path)))
    if manifest.get("package") is not None:
        projects.append((root, manifest))

    for member_root, member_manifest in projects:

        def check_local(local_path: Path, member_root: Path = member_root) -> None:
            local_root = (member_root / local_path).resolve(strict=True)
            if local_root not in absolute_roots:
                raise ProjectError(f"Local dependency not in workspace: {local_path}")

        for name, dep in iter_dependencies(member_manifest):
            with _context(f'In dependency "{name}" of workspace member "{member_root}"'):
                inputs.check_dependency(dep, lock_version, check_local)


def analyze_project(root: str | Path, manifest: Manifest, lock_version: int) -> FlakeInputs:
    """Collect the flake inputs of the project or workspace rooted at ``root``."""
    root = Path(root)
    if manifest.get("patch"):
        raise ProjectError("[patch] is not supported yet")

    workspace = manifest.get("workspace")
    inputs = FlakeInputs(is_workspace=workspace is not None)

    package = manifest.get("package")
    if package is not None:
        inputs.main_pkg = (package["name"], Products.from_manifest(root, manifest))

    if workspace is None:
        for name, dep in iter_dependencies(manifest):
            with _context(f'In dependency "{name}"'):
                inputs.check_dependency(dep, lock_version, _reject_local)
    else:
        _check_workspace(inputs, root, manifest, workspace, lock_version)

    inputs.registries = dict(sorted(inputs.registries.items()))
    inputs.git_srcs = dict(sorted(inputs.git_srcs.items()))
    return inputs


def locate_project(
    root: str | Path = ".",
    explicit_root: bool = False,
    print_only: bool = False,
    force: bool = False,
    out_path: str | Path = "flake.nix",
) -> tuple[Path, Manifest, int]:
    """Check the project at ``root`` before a flake is generated for it.

    Returns the canonical root, its manifest and the lock file version.
    Warnings about the lock file go to standard error.
    """
    if print_only and force:
        raise ProjectError("`--force` cannot be used together with `--print`")
    try:
        root = Path(root).resolve(strict=True)
    except OSError as exc:
        raise ProjectError(f"Failed locate the current directory: {exc}") from exc

    out_path = Path(out_path)
    if not (print_only or force) and out_path.exists():
        raise ProjectError(
            "flake.nix already exists. "
            "Use `--force` to overwrite or `--print` to print to stdout only"
        )

    with _context("Failed to load Cargo.toml"):
        manifest = load_manifest(root / "Cargo.toml")

    if "workspace" not in manifest and not explicit_root:
        parent_manifest = next(
            (p / "Cargo.toml" for p in root.parents if (p / "Cargo.toml").exists()),
            None,
        )
        if parent_manifest is not None:
            raise ProjectError(
                f"Are we in a workspace? Found ancestor manifest at {parent_manifest}\n"
                "Please run `init` in the *workspace root* directory.\n"
                "If you are sure the current directory is the root, use `--root=.`"
            )

    lock_path = root / "Cargo.lock"
    if not lock_path.exists():
        raise ProjectError(
            f"Cargo.lock does not exist at {lock_path}\n"
            "We don't support lock generation currently. "
            "Please run `cargo update` first."
        )
    lock_version = read_lock_version(lock_path)
    if lock_version == 2:
        print(_OLD_LOCK_WARNING, file=sys.stderr)
    elif lock_version != 3:
        print("warning: Unsupported version of Cargo.lock, building may fail", file=sys.stderr)

    return root, manifest, lock_version