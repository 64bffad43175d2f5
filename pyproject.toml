[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rctkit"
version = "0.1.0"
description = "Application toolkit: a small JSON tree, an event loop with timers and sockets, file system watching, command-line configuration, buffers, dates, CPU usage and AES-256-CBC."
requires-python = ">=3.10"
dependencies = [
    "cryptography",
    "watchdog",
]
keywords = [
    "event loop",
    "timers",
    "json",
    "file system watcher",
    "command line options",
    "aes",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Application Frameworks",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["rctkit"]

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
