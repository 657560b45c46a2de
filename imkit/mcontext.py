"""Request-scoped values such as the operation ID, carried in an immutable context."""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Hashable, Iterable, Mapping, Optional, Tuple

OPERATION_ID = "operationID"
OP_USER_ID = "opUserID"
OP_USER_PLATFORM = "platform"
CONN_ID = "connID"
TRIGGER_ID = "triggerID"
REMOTE_ADDR = "remoteAddr"

_MUST_INFO_KEYS = (OPERATION_ID, OP_USER_ID, OP_USER_PLATFORM, CONN_ID)


class MissingContextError(ValueError):
    """Raised when a context lacks a value that is required."""


class Context:
    """An immutable set of key/value pairs; adding a value gives a new context."""

    __slots__ = ("_values",)

    def __init__(self, values: Optional[Mapping[Hashable, Any]] = None) -> None:
        self._values = MappingProxyType(dict(values or {}))

    def with_value(self, key: Hashable, value: Any) -> "Context":
        """Return a new context holding ``key`` set to ``value``."""
        values = dict(self._values)
        values[key] = value
        return Context(values)

    def value(self, key: Hashable) -> Any:
        """Return the value stored under ``key``, or None."""
        return self._values.get(key)

    def __repr__(self) -> str:
        return f"Context({dict(self._values)!r})"


def _string(ctx: Context, key: str) -> Optional[str]:
    value = ctx.value(key)
    return value if isinstance(value, str) else None


def _get(ctx: Context, key: str) -> str:
    return _string(ctx, key) or ""


def new_ctx(operation_id: str) -> Context:
    """Create a fresh context carrying ``operation_id``."""
    return set_operation_id(Context(), operation_id)


def with_op_user_id(ctx: Context, op_user_id: str) -> Context:
    return ctx.with_value(OP_USER_ID, op_user_id)


def with_op_user_platform(ctx: Context, platform: str) -> Context:
    return ctx.with_value(OP_USER_PLATFORM, platform)


def with_trigger_id(ctx: Context, trigger_id: str) -> Context:
    return ctx.with_value(TRIGGER_ID, trigger_id)


def set_operation_id(ctx: Context, operation_id: str) -> Context:
    return ctx.with_value(OPERATION_ID, operation_id)


def set_op_user_id(ctx: Context, op_user_id: str) -> Context:
    return ctx.with_value(OP_USER_ID, op_user_id)


def set_conn_id(ctx: Context, conn_id: str) -> Context:
    return ctx.with_value(CONN_ID, conn_id)


def get_operation_id(ctx: Context) -> str:
    return _get(ctx, OPERATION_ID)


def get_op_user_id(ctx: Context) -> str:
    return _get(ctx, OP_USER_ID)


def get_conn_id(ctx: Context) -> str:
    return _get(ctx, CONN_ID)


def get_trigger_id(ctx: Context) -> str:
    return _get(ctx, TRIGGER_ID)


def get_op_user_platform(ctx: Context) -> str:
    return _get(ctx, OP_USER_PLATFORM)


def get_remote_addr(ctx: Context) -> str:
    return _get(ctx, REMOTE_ADDR)


def _require(ctx: Context, key: str, name: str) -> str:
    value = _string(ctx, key)
    if value is None:
        raise MissingContextError(f"ctx missing {name}")
    return value


def get_must_ctx_info(ctx: Context) -> Tuple[str, str, str, str]:
    """Return (operation_id, op_user_id, platform, conn_id); the first three are required."""
    operation_id = _require(ctx, OPERATION_ID, "operationID")
    op_user_id = _require(ctx, OP_USER_ID, "opUserID")
    platform = _require(ctx, OP_USER_PLATFORM, "platform")
    return operation_id, op_user_id, platform, get_conn_id(ctx)


def get_ctx_infos(ctx: Context) -> Tuple[str, str, str, str]:
    """Return (operation_id, op_user_id, platform, conn_id); only the first is required."""
    operation_id = _require(ctx, OPERATION_ID, "operationID")
    return operation_id, get_op_user_id(ctx), get_op_user_platform(ctx), get_conn_id(ctx)


def with_must_info_ctx(values: Iterable[str]) -> Context:
    """Build a context from values given in the order operation ID, user ID, platform, conn ID."""
    values = list(values)
    if len(values) > len(_MUST_INFO_KEYS):
        raise ValueError(f"at most {len(_MUST_INFO_KEYS)} values can be given, got {len(values)}")
    return Context(dict(zip(_MUST_INFO_KEYS, values)))