"""Composition of unary call interceptors."""

from __future__ import annotations

from typing import Any, Callable

Handler = Callable[[Any, Any], Any]
Interceptor = Callable[[Any, Any, Any, Handler], Any]


def intercept_chain(*args: Interceptor) -> Interceptor:
    """Combine interceptors into one; the first given is the outermost.

    Each interceptor is called as ``interceptor(ctx, req, info, handler)``
    and the combined one has the same signature.
    """
    intercepts = tuple(args)

    def chained(ctx: Any, req: Any, info: Any, handler: Handler) -> Any:
        def link(interceptor: Interceptor, inner: Handler) -> Handler:
            return lambda current_ctx, current_req: interceptor(current_ctx, current_req, info, inner)

        call = handler
        for interceptor in reversed(intercepts):
            call = link(interceptor, call)
        return call(ctx, req)

    return chained