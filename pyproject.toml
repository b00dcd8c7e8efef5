[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "synctrie"
version = "0.1.0"
description = "A persistent Merkle sync trie with 20-byte BLAKE3 hashes, batched writes and commit/rollback"
requires-python = ">=3.10"
dependencies = []
keywords = ["merkle", "trie", "blake3", "sync", "key-value", "storage", "sqlite"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["synctrie"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
strict = true
