[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "errtrace"
version = "0.1.0"
description = "Structured, traceable error types with user messages, fields, aggregates and HTTP JSON round trips"
requires-python = ">=3.10"
keywords = ["errors", "exceptions", "traceback", "http", "error-handling"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["errtrace"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
