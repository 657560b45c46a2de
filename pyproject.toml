[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "imkit"
version = "0.1.0"
description = "Service toolkit: rotating log files, structured logging, bounded and task queues, in-memory message queues and request context helpers"
requires-python = ">=3.10"
dependencies = []
keywords = ["logging", "log rotation", "queue", "message queue", "context", "interceptor"]
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
    "Topic :: Software Development :: Libraries",
    "Topic :: System :: Logging",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["imkit"]

[tool.pytest.ini_options]
addopts = "-ra"
