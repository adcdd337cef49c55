"""Inspect Cargo projects for Nix flake inputs, map git URLs to flake references, and convert TOML to JSON."""

__version__ = "0.1.0"

__all__ = ["__version__"]