"""Conversation records and the filenames they are stored under."""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from chat_dumpster.common import sanitize_title

DATE_FORMAT = "%Y.%m.%d"


def coerce_timestamp(value: Any) -> float:
    """Turn an epoch-seconds value of any shape into a float.

    Numbers and numeric strings are accepted; anything else, including
    NaN and infinity, becomes 0.
    """
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def format_date(timestamp: float) -> str:
    """UTC ``YYYY.MM.DD`` for an epoch-seconds timestamp."""
    try:
        moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        moment = datetime.fromtimestamp(0, tz=timezone.utc)
    return moment.strftime(DATE_FORMAT)


@dataclass
class Conversation:
    """One record of a chat export.

    ``raw`` keeps the record exactly as read so it can be written back
    without loss; the other attributes are views used for sorting, naming
    and identity.
    """
    raw: Dict[str, Any]
    title: Optional[str] = None
    create_time: Any = None
    update_time: Any = None
    mapping: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Any) -> "Conversation":
        """Build a Conversation from one element of the export array.

        Raises:
            TypeError: If the record is not a JSON object
        """
        if not isinstance(record, dict):
            raise TypeError(f"Conversation record must be an object, got {type(record).__name__}")

        mapping = record.get('mapping')
        if not isinstance(mapping, dict):
            mapping = {}

        title = record.get('title')
        return cls(
            raw=record,
            title=title if isinstance(title, str) else None,
            create_time=record.get('create_time'),
            update_time=record.get('update_time'),
            mapping=mapping,
        )

    @property
    def conversation_id(self) -> Optional[str]:
        """Export id, falling back to the first node of the message graph."""
        for key in ('conversation_id', 'id'):
            value = self.raw.get(key)
            if value:
                return str(value)
        return next(iter(self.mapping), None)

    @property
    def sort_timestamp(self) -> float:
        """Last-update time, falling back to creation time, then 0."""
        if self.update_time is not None:
            return coerce_timestamp(self.update_time)
        if self.create_time is not None:
            return coerce_timestamp(self.create_time)
        return 0.0

    def identity(self) -> Tuple[Any, ...]:
        """Key under which two records count as the same conversation.

        Message contents are not part of the key, so an edited message
        with unchanged metadata and node ids is still a duplicate.
        """
        return (
            self.title,
            self.create_time,
            self.update_time,
            tuple(sorted(self.mapping)),
        )

    def is_same_as(self, other: "Conversation") -> bool:
        return self.identity() == other.identity()

    def base_filename(self) -> str:
        """``<YYYY.MM.DD>_<sanitized title>`` without extension or suffix."""
        return f"{format_date(self.sort_timestamp)}_{sanitize_title(self.title)}"
