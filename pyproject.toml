[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "barintodo"
version = "0.1.0"
description = "A small to-do service: SQL storage, a JSON RPC-style WSGI application and a command-line client"
requires-python = ">=3.10"
dependencies = []
keywords = ["todo", "tasks", "rpc", "wsgi", "sqlite", "cli"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Environment :: Web Environment",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
    "Topic :: Office/Business :: Scheduling",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
todo = "barintodo.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["barintodo"]

[tool.pytest.ini_options]
addopts = "-ra"
