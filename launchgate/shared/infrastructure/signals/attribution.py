"""Install-attribution source."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from launchgate.shared.core.errors import LookupFailure

logger = logging.getLogger(__name__)

AttributionLookup = Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]


class AttributionSource:
    """Single attribution query.

    The lookup may be a plain function (run in the default executor so it
    never blocks the loop) or a coroutine function. Failures and empty values
    both surface as LookupFailure.
    """

    def __init__(self, lookup: Optional[AttributionLookup] = None):
        self._lookup = lookup

    async def fetch(self) -> str:
        """Run the lookup once.

        Raises:
            LookupFailure: If no lookup is configured, it raises, or it yields nothing usable
        """
        if self._lookup is None:
            raise LookupFailure("attribution lookup unavailable")

        try:
            if inspect.iscoroutinefunction(self._lookup):
                token = await self._lookup()
            else:
                loop = asyncio.get_running_loop()
                token = await loop.run_in_executor(None, self._lookup)
                if inspect.isawaitable(token):
                    token = await token
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise LookupFailure(f"attribution lookup raised {type(e).__name__}: {e}") from e

        if token is None:
            raise LookupFailure("attribution lookup returned nothing")
        token = str(token).strip()
        if not token:
            raise LookupFailure("attribution lookup returned an empty token")
        logger.debug("Attribution token obtained")
        return token
