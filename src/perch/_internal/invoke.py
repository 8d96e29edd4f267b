"""Call sync or async callables uniformly.

Controller operations and lifecycle hooks can be ``def`` or ``async def``.
The check lives here so the dispatcher and the app share it::

    result = await invoke(controller.get, params)
"""

import inspect
from typing import Any


async def invoke(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *func* and await the result if it is awaitable."""
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
