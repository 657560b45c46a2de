"""Service toolkit: rotating log files, structured logging, queues, in-memory message queues and request context."""

__version__ = "0.1.0"

__all__ = [
    "bounded",
    "interceptors",
    "logcolor",
    "mcontext",
    "memqueue",
    "rotate_fileutil",
    "rotatelogs",
    "simmq",
    "taskqueue",
    "zlog",
]