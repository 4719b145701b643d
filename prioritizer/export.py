"""
CSV export of the ranked item list.

Rows follow the results order. Quoting is minimal: a field is quoted only
when it contains a comma, a quote, CR or LF, with inner quotes doubled.
"""

import csv
import io
import logging
from datetime import date, datetime

from .models import Dimension, Item
from .sequencing import sorted_for_results
from .state import AppState

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "Rank",
    "Item Name",
    "Link",
    "Urgency",
    "Urgency Title",
    "Value",
    "Value Title",
    "Duration",
    "Duration Title",
    "Cost of Delay",
    "CD3",
    "Confidence Weighted CD3",
    "Active Status",
    "Notes Count",
    "Notes",
    "Has Confidence Survey",
    "Created Date",
]


def export_filename(today: date | None = None) -> str:
    today = today or date.today()
    return f"prioritizer-export-{today.isoformat()}.csv"


def _format_number(value: float | None) -> str:
    return "" if value is None else f"{value:.2f}"


def _format_notes(item: Item) -> str:
    return "; ".join(note.text for note in item.notes if note.text.strip())


def _format_date(value: str | None) -> str:
    if not value:
        return ""
    try:
        return datetime.fromisoformat(value).strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return value


def item_row(rank: int, item: Item, state: AppState) -> list:
    buckets = state.buckets
    return [
        rank,
        item.name,
        item.link or "",
        item.urgency or "",
        buckets.title_for(Dimension.URGENCY, item.urgency),
        item.value or "",
        buckets.title_for(Dimension.VALUE, item.value),
        item.duration or "",
        buckets.title_for(Dimension.DURATION, item.duration),
        _format_number(item.cost_of_delay or 0),
        _format_number(item.cd3 or 0),
        _format_number(item.confidence_weighted_cd3 if item.has_confidence_survey else None),
        "Active" if item.active else "Inactive",
        len(item.notes),
        _format_notes(item),
        "Yes" if item.has_confidence_survey else "No",
        _format_date(item.created_at),
    ]


def export_to_csv(items: list[Item], state: AppState) -> str:
    """Render items as CSV text. Header only when there are no items."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    writer.writerow(CSV_COLUMNS)
    for index, item in enumerate(sorted_for_results(items), start=1):
        rank = item.sequence if item.sequence is not None else index
        writer.writerow(item_row(rank, item, state))
    logger.debug("Exported %d items to CSV", len(items))
    return buffer.getvalue()
