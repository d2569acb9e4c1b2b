"""
Location tool for the agentai loop.

Many APIs (weather, maps) accept only coordinates while people name places by
address.  ``LocationToolBox`` resolves a free-form place name or street
address to latitude/longitude using the Nominatim OpenStreetMap API
(https://nominatim.openstreetmap.org/), which needs no API key.

Please follow the Nominatim Usage Policy:
https://operations.osmfoundation.org/policies/nominatim/
"""

from __future__ import annotations

import logging

import httpx
from pydantic import BaseModel, Field

from agentai.conversation.errors import ToolExecutionError, ToolMessageError
from agentai.conversation.tools.base import FunctionToolBox

logger = logging.getLogger(__name__)

_NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
# Nominatim rejects requests without a User-Agent.
_USER_AGENT = "agentai-client"


class LocationArgs(BaseModel):
    location: str = Field(
        description=(
            'The name of the location to search for (e.g., "Eiffel Tower", '
            '"New York City", or a full street address).'
        )
    )


class LocationToolBox(FunctionToolBox):
    """Geocodes place names with Nominatim.

    Args:
        timeout: HTTP request timeout in seconds.
        tool_timeout: Maximum seconds per tool call (see ``FunctionToolBox``).
        max_retries: Additional attempts on retryable failures.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        *,
        tool_timeout: float | None = None,
        max_retries: int = 0,
    ) -> None:
        super().__init__(timeout=tool_timeout, max_retries=max_retries)
        self.http_timeout = timeout
        self.add_tool(
            self.get_location,
            arguments=LocationArgs,
            description=(
                "Use this tool to get the geographical location (latitude and longitude) "
                'of a place. For example, to answer "Where is the Eiffel Tower?". You can '
                "search using not only a city name but also more specific details, like a "
                "full street address. It returns the display name, latitude, and longitude."
            ),
        )

    async def get_location(self, args: LocationArgs) -> str:
        logger.debug("Geocoding location: %r", args.location)
        try:
            async with httpx.AsyncClient(
                timeout=self.http_timeout, headers={"User-Agent": _USER_AGENT}
            ) as client:
                response = await client.get(
                    _NOMINATIM_URL,
                    params={"q": args.location, "format": "jsonv2"},
                )
                response.raise_for_status()
                locations = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error("Nominatim HTTP error: %s", exc)
            raise ToolExecutionError(
                f"API request failed with status: {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Nominatim request failed: %s", exc)
            raise ToolExecutionError(f"Failed to send request: {exc}") from exc
        except ValueError as exc:
            raise ToolExecutionError(f"Failed to parse JSON response: {exc}") from exc

        if not locations:
            raise ToolMessageError(f"No location found for {args.location!r}")

        first = locations[0]
        return (
            f"Location: {first['display_name']}, "
            f"Latitude: {first['lat']}, Longitude: {first['lon']}"
        )
