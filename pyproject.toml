[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "linkpoll"
version = "0.1.0"
description = "Linked-list byte buffers with no-copy reader/writer semantics, epoll and socket helpers, and a poller manager"
requires-python = ">=3.10"
dependencies = []
keywords = ["buffer", "linkbuffer", "epoll", "poller", "networking", "zero-copy", "readv", "writev"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["linkpoll"]

[tool.pytest.ini_options]
addopts = "-ra"
