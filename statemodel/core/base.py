# statemodel/core/base.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import inspect
from typing import Any, Callable, Optional


async def call_maybe_async(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """
    Invoke a callable that may be a plain function or a coroutine function,
    awaiting the result when it is awaitable.
    """
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        return await result
    return result


def surface_location(surface: Any) -> Optional[str]:
    """
    Read the current location of a surface handle. Accepts a ``location``
    attribute, a ``url`` attribute, or a zero-argument callable under either
    name. Returns None when the surface cannot report a location.
    """
    if surface is None:
        return None
    for name in ("location", "url"):
        attr = getattr(surface, name, None)
        if attr is None:
            continue
        if callable(attr):
            attr = attr()
        return str(attr)
    return None
