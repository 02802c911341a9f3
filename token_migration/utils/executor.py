"""
Blocking Call Helper
====================

The Supabase client is synchronous. Stages running on the event loop hand
store calls to the default executor so an in-flight write never stalls the
other lookups in a snapshot batch.
"""

import asyncio
import functools
from typing import Any, Callable


async def run_blocking(func: Callable[..., Any], *args, **kwargs) -> Any:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))
