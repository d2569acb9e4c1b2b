"""
Date/time tools for the agentai loop.

``CurrentDateAndTimeToolBox`` lets the model answer questions such as "What
is today's date?", "What time is it in Tokyo?" or "What is 14:00 in New York
in Tokyo time?".  No external API is needed; timezone support uses the stdlib
``zoneinfo`` module with IANA names.

Unknown timezones and malformed dates/times raise ``ToolMessageError`` so the
model sees what was wrong and can correct its arguments.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field

from agentai.conversation.errors import ToolMessageError
from agentai.conversation.tools.base import FunctionToolBox

logger = logging.getLogger(__name__)


class DayOfWeekArgs(BaseModel):
    date: str = Field(description="Date in `YYYY-MM-DD` format")


class TimezoneArgs(BaseModel):
    timezone: str = Field(
        description=(
            "Timezone provided in IANA timezone names format "
            '(e.g., "America/New_York", "Europe/London", "Asia/Tokyo").'
        )
    )


class ConvertTimeArgs(BaseModel):
    source_timezone: str = Field(
        description='Source timezone in IANA format (e.g., "America/New_York", "Asia/Tokyo").'
    )
    time: str = Field(description="Time in `HH:MM` format to be converted")
    target_timezone: str = Field(
        description='Target timezone in IANA format (e.g., "America/New_York", "Asia/Tokyo").'
    )


def _resolve_timezone(name: str, label: str = "") -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone: %r", name)
        raise ToolMessageError(f"Unknown {label}timezone: {name}") from None


class CurrentDateAndTimeToolBox(FunctionToolBox):
    """Tools for the current date and time, with timezone conversion.

    Local date/time tools use the system's local timezone.

    Args:
        tool_timeout: Maximum seconds per tool call (see ``FunctionToolBox``).
        max_retries: Additional attempts on retryable failures.
    """

    def __init__(self, tool_timeout: float | None = None, max_retries: int = 0) -> None:
        super().__init__(timeout=tool_timeout, max_retries=max_retries)
        self.add_tool(
            self.get_today_date,
            description=(
                'Use this tool to answer questions like: "What is today\'s date?". '
                "It returns the date in `YYYY-MM-DD` format. "
                "The date is based on the local timezone of the system."
            ),
        )
        self.add_tool(
            self.get_current_time,
            description=(
                'Use this tool to answer questions like: "What time is it?". '
                "It returns the time in `HH:MM:SS` format. "
                "The time is based on the local timezone of the system."
            ),
        )
        self.add_tool(
            self.get_current_datetime,
            description=(
                "Use this tool to get the complete current date and time for precise "
                'and unambiguous time-stamping, e.g. "What is the current timestamp?". '
                'Returns an ISO 8601 timestamp (e.g., "2023-10-27T10:30:00+00:00").'
            ),
        )
        self.add_tool(
            self.get_day_of_week,
            arguments=DayOfWeekArgs,
            description=(
                "Use this tool to find the day of the week for a given date. "
                'For example, to answer "What day of the week was 2024-01-01?".'
            ),
        )
        self.add_tool(
            self.get_time_in_timezone,
            arguments=TimezoneArgs,
            description=(
                'Use this tool to answer questions like: "What time is it in Tokyo?". '
                "You must provide the timezone. "
                "It returns the time in `HH:MM:SS` format for that zone."
            ),
        )
        self.add_tool(
            self.convert_time,
            arguments=ConvertTimeArgs,
            description=(
                "Use this tool to convert time between different timezones. "
                'For example, to answer "What is 14:00 in New York in Tokyo time?". '
                "You must provide the source timezone, the time to convert, "
                "and the target timezone."
            ),
        )

    @staticmethod
    def _now_local() -> datetime:
        return datetime.now().astimezone()

    def get_today_date(self, args: dict) -> str:
        return self._now_local().date().isoformat()

    def get_current_time(self, args: dict) -> str:
        return self._now_local().strftime("%H:%M:%S")

    def get_current_datetime(self, args: dict) -> str:
        return self._now_local().isoformat(timespec="seconds")

    def get_day_of_week(self, args: DayOfWeekArgs) -> str:
        try:
            parsed = date.fromisoformat(args.date)
        except ValueError:
            raise ToolMessageError(
                f"Invalid date {args.date!r}; expected YYYY-MM-DD"
            ) from None
        return parsed.strftime("%A")

    def get_time_in_timezone(self, args: TimezoneArgs) -> str:
        tz = _resolve_timezone(args.timezone)
        return datetime.now(timezone.utc).astimezone(tz).strftime("%H:%M:%S")

    def convert_time(self, args: ConvertTimeArgs) -> str:
        source_tz = _resolve_timezone(args.source_timezone, "source ")
        target_tz = _resolve_timezone(args.target_timezone, "target ")
        try:
            parsed = time.fromisoformat(args.time)
        except ValueError:
            raise ToolMessageError(
                f"Invalid time format for {args.time!r}; expected HH:MM"
            ) from None

        today_in_source = datetime.now(timezone.utc).astimezone(source_tz).date()
        source_dt = datetime.combine(today_in_source, parsed.replace(tzinfo=None), tzinfo=source_tz)
        return source_dt.astimezone(target_tz).strftime("%H:%M")
