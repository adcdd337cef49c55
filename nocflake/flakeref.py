"""Conversion of git URLs into Nix flake references, and Nix string helpers."""

from __future__ import annotations

import re

__all__ = ["FlakeRefError", "git_url_to_flake_ref", "nix_escape", "ident_or_str"]

_SUPPORTED_SCHEMES = ("http://", "https://", "ssh://", "git://")

_GITHUB_URL = re.compile(r"^https?://github.com/([^/?#]+)/([^/?#]+?)(.git)?/?\Z")

_NIX_KEYWORDS = frozenset(
    {"if", "then", "else", "assert", "with", "let", "in", "rec", "inherit", "or"}
)


class FlakeRefError(ValueError):
    """A git URL cannot be expressed as a flake reference."""


def git_url_to_flake_ref(
    url: str, ref_name: str | None = None, rev: str | None = None
) -> str:
    """Return the flake reference for a git ``url`` at an optional ref or revision.

    A revision takes precedence over a ref name. GitHub URLs become
    ``github:`` references.
    """
    stripped = url.removeprefix("git+")
    if not stripped.startswith(_SUPPORTED_SCHEMES):
        raise FlakeRefError(
            f"Only http/https/ssh/git schemas are supported for git url, got: {url}"
        )

    match = _GITHUB_URL.match(stripped)
    if match is not None:
        owner, repo = match.group(1), match.group(2)
        pinned = rev if rev is not None else ref_name
        if pinned is not None:
            return f"github:{owner}/{repo}/{pinned}"
        return f"github:{owner}/{repo}"

    if "?" in stripped or "#" in stripped:
        raise FlakeRefError(f"Url containing `?` or `#` is not supported yet: {url}")

    prefix = "" if stripped.startswith("git://") else "git+"
    if rev is not None:
        return f"{prefix}{stripped}?rev={rev}"
    if ref_name is not None:
        return f"{prefix}{stripped}?ref={ref_name}"
    return f"{prefix}{stripped}"


def nix_escape(s: str) -> str:
    """Escape backslashes and double quotes for a Nix string literal."""
    return s.replace("\\", "\\\\").replace('"', '\\"')


def _is_ident_start(c: str) -> bool:
    return (c.isascii() and c.isalpha()) or c == "_"


def _is_ident_char(c: str) -> bool:
    return (c.isascii() and c.isalnum()) or c in "_-'"


def ident_or_str(s: str) -> str:
    """Return ``s`` unchanged if it is a valid Nix identifier, else escape it."""
    if (
        s
        and _is_ident_start(s[0])
        and all(_is_ident_char(c) for c in s)
        and s not in _NIX_KEYWORDS
    ):
        return s
    return nix_escape(s)