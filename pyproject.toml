[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "agenthub"
version = "0.1.0"
description = "Slack coordination hub for agent bots, with an encrypted secret store and a reactive settings cache"
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = ["slack", "bots", "agents", "encrypted-store", "settings", "chatops"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Chat",
    "Topic :: Security :: Cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["agenthub"]

[tool.hatch.build.targets.sdist]
include = ["agenthub", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
