[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "meterchan"
version = "0.6.1"
description = "Asyncio channels with built-in metering, optional message prioritisation, metered oneshots and subsystem connection graphs"
requires-python = ">=3.10"
keywords = ["asyncio", "channel", "metrics", "queue", "oneshot", "priority", "backpressure"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
]
dependencies = [
    "networkx",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["meterchan"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
