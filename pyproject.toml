[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wshandshake"
version = "0.1.0"
description = "WebSocket opening handshake for clients and servers over any blocking or non-blocking stream"
requires-python = ">=3.10"
dependencies = []
keywords = ["websocket", "handshake", "rfc6455", "http", "upgrade"]
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
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["wshandshake"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
