[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nocflake"
version = "0.1.0"
description = "Inspect a Cargo project or workspace and work out the flake inputs needed to build it with Nix"
requires-python = ">=3.11"
dependencies = []
keywords = ["nix", "flake", "cargo", "rust", "toml", "json", "build"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
toml2json = "nocflake.toml2json:main"

[tool.hatch.build.targets.wheel]
packages = ["nocflake"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
