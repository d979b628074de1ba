[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ticketdesk"
version = "0.1.0"
description = "A small help-desk ticketing server and terminal client speaking a pipe-delimited TCP protocol"
requires-python = ">=3.10"
dependencies = []
keywords = ["ticketing", "helpdesk", "support", "tcp", "server", "client"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Groupware",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
ticketdesk-server = "ticketdesk.server:main"
ticketdesk-client = "ticketdesk.client:main"

[tool.hatch.build.targets.wheel]
packages = ["ticketdesk"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
