"""Due-date rules for recurring tasks."""

from datetime import datetime, timedelta

from src.core.config import constants
from src.domain.task import Frequency
from src.domain.timestamps import utc_now


FREQUENCY_OFFSETS: dict[Frequency, timedelta] = {
    Frequency.DAILY: timedelta(hours=constants.DAILY_OFFSET_HOURS),
    Frequency.WEEKLY: timedelta(days=constants.WEEKLY_OFFSET_DAYS),
    Frequency.MONTHLY: timedelta(days=constants.MONTHLY_OFFSET_DAYS),
}


def frequency_offset(frequency: Frequency | str) -> timedelta:
    """Return the offset between a task event and its next due date.

    Unrecognized frequencies get the daily offset.
    """
    return FREQUENCY_OFFSETS[Frequency.parse(frequency)]


def calculate_next_due(*, frequency: Frequency | str, from_time: datetime | None = None) -> datetime:
    """Calculate the next due date from `from_time` (default: now, UTC).

    The offset is applied to the exact event time; there is no snapping to
    midnight, so a daily task completed at 23:00 is due again at 23:00 tomorrow.
    """
    base_time = from_time or utc_now()
    return base_time + frequency_offset(frequency)
