# nocflake

Helpers for preparing a Cargo project or workspace to be built by Nix.

`nocflake` reads a project's `Cargo.toml` and `Cargo.lock`. It checks that
every dependency comes from a source Nix can fetch. It then collects the
flake inputs the build needs, which are extra registries and git sources.
It also ships a small `toml2json` command that turns TOML into JSON.

Requires Python 3.11 or later and has no runtime dependencies.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## The `toml2json` command

`toml2json` reads a TOML document from standard input. It writes the
document to standard output as a single line of compact JSON with sorted
keys, followed by a newline:

```
toml2json < Cargo.lock > Cargo.lock.json
```

TOML dates and times become objects of the form
`{"$__toml_private_datetime": "<RFC 3339 text>"}`. Infinite and NaN floats
become `null`.

When the input is invalid TOML or invalid UTF-8, the command prints
`Error: ...` to standard error, writes nothing to standard output and
exits with status 1.

The same conversion is available from Python. `convert` accepts `str` or
`bytes`:

```python
from nocflake.toml2json import convert

convert(b'[package]\nname = "demo"\n')
# '{"package":{"name":"demo"}}'
```

## Turning git URLs into flake references

`nocflake.flakeref.git_url_to_flake_ref(url, ref_name=None, rev=None)`
maps a git URL to a flake reference. You can also give a branch or tag name
and a revision:

```python
from nocflake.flakeref import git_url_to_flake_ref

git_url_to_flake_ref("https://example.com")
# 'git+https://example.com'
git_url_to_flake_ref("https://example.com", "dev")
# 'git+https://example.com?ref=dev'
git_url_to_flake_ref("https://example.com", "dev", "123")
# 'git+https://example.com?rev=123'
git_url_to_flake_ref("git+git://example.com")
# 'git://example.com'
git_url_to_flake_ref("https://github.com/foo/bar.git", None, "123")
# 'github:foo/bar/123'
```

The function follows these rules:

- A leading `git+` is stripped. Only the `http`, `https`, `ssh` and `git`
  schemes are accepted.
- A GitHub HTTP(S) URL of the form `owner/repo` becomes `github:owner/repo`.
  When a revision is given, it is appended as a third path segment. When
  there is no revision but a ref name is given, the ref name is appended
  instead. A trailing `.git` or `/` is ignored.
- Other URLs may not contain `?` or `#`. They get a `git+` prefix, except
  for `git://` URLs. A revision wins over a ref name.

Unsupported URLs raise `nocflake.flakeref.FlakeRefError`, which is a
subclass of `ValueError`.

Two string helpers are also provided:

- `nix_escape(s)` escapes backslashes and double quotes for a Nix string.
- `ident_or_str(s)` returns `s` unchanged when it is a valid Nix identifier
  and not a Nix keyword. Otherwise it returns the escaped form of `s`.

## Inspecting a project

`nocflake.project` holds the project analysis. Problems are raised as
`nocflake.project.ProjectError`.

- `locate_project(root=".", explicit_root=False, print_only=False, force=False, out_path="flake.nix")`
  - Resolves the project root, loads its manifest and reads the lock
    version. It returns `(root, manifest, lock_version)`.
  - It refuses to continue in any of these cases:
    - `print_only` and `force` are both set.
    - `out_path` already exists while neither `print_only` nor `force` is
      set.
    - The lock file is missing.
    - The root is not a workspace, `explicit_root` is false, and an
      ancestor directory holds a `Cargo.toml`.
  - Lock versions other than 3 produce a warning on standard error.
- `load_manifest(path)` parses a `Cargo.toml`. It requires a `name` when a
  `[package]` table is present.
- `read_lock_version(path)` returns the `version` of a `Cargo.lock`. It
  returns 2 when the lock does not name a version.
- `get_workspace_members(root, members)` expands the workspace member glob
  patterns relative to `root`.
- `iter_dependencies(manifest)` yields `(name, spec)` pairs. It covers
  normal, dev and build dependencies first, then target-specific ones.
- `analyze_project(root, manifest, lock_version)` checks every dependency
  of the package or workspace and returns a `FlakeInputs`. That object has:
  - `is_workspace`
  - `main_pkg`, which is `(name, Products)` when there is a `[package]`
  - `registries` and `git_srcs`, which map source ids to flake references,
    sorted by key

`DepSource.from_dependency(dep)` classifies a dependency as one of the
following `SourceKind` values:

- crates.io
- a named registry
- a registry index URL
- a local path
- git, with an optional branch, tag or rev as a `GitRef` with a
  `GitRefKind`

`FlakeInputs.check_dependency(dep, lock_version, on_local_dep)` records
what a dependency needs:

- Named registries are rejected.
- Path dependencies are passed to `on_local_dep`.
- Registry index URLs are added to `registries`.
- Git sources are added to `git_srcs`. The key is the URL with `?tag=`,
  `?rev=` or, for lock version 3 or later, `?branch=` appended.

Several limits apply to the analysis:

- Local paths are allowed only when they point at members of the same
  workspace.
- `[patch]` sections are not supported.
- Workspaces without explicit `members` are not supported.
- A dependency that names more than one source, or more than one of
  `branch`/`tag`/`rev`, is an error.

`Products.from_manifest(root, manifest)` reports whether the package has a
library, binaries, benches, tests and examples. It works from the target
declarations in the manifest, the `auto*` package settings, `src/lib.rs`
and `src/main.rs`, and `.rs` files or `*/main.rs` in the conventional
directories.

## What this package does not do

`nocflake` works out the inputs a flake needs, but it does not render or
write a `flake.nix` file. It also has no command for doing so. The only
command it installs is `toml2json`. Lock files are read but never created
or updated.