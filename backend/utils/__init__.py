"""
Backend utility modules for the RDC portal.
"""

from backend.utils.amount_words import amount_in_words, format_rupees, number_to_words
from backend.utils.local_calendar import (
    LocalCalendar,
    format_display_date,
    google_calendar_link,
)

__all__ = [
    "LocalCalendar",
    "amount_in_words",
    "format_display_date",
    "format_rupees",
    "google_calendar_link",
    "number_to_words",
]
