"""
Override reason extraction.

Manual opening-balance rows carry an optional justification note.  Depending
on which version of the data-entry form wrote the row, the note lives in the
row metadata or in the form data, under one of several keys.  The lookup is
an ordered list of named strategies; the first one that yields a non-blank
value wins.

Pure, zero I/O.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ReasonSource(str, Enum):
    """Which document of a row a strategy reads."""

    METADATA = "metadata"
    FORM_DATA = "form_data"


@dataclass(frozen=True)
class ReasonStrategy:
    """Reads one key of one document."""

    name: str
    source: ReasonSource
    key: str

    def extract(
        self,
        metadata: Mapping[str, Any] | None,
        form_data: Mapping[str, Any] | None,
    ) -> str | None:
        document = metadata if self.source is ReasonSource.METADATA else form_data
        if not isinstance(document, Mapping):
            return None
        return clean_text(document.get(self.key))


DEFAULT_REASON_STRATEGIES: tuple[ReasonStrategy, ...] = (
    ReasonStrategy("metadata_override_reason", ReasonSource.METADATA, "overrideReason"),
    ReasonStrategy("metadata_reason", ReasonSource.METADATA, "reason"),
    ReasonStrategy("metadata_notes", ReasonSource.METADATA, "notes"),
    ReasonStrategy("form_override_reason", ReasonSource.FORM_DATA, "overrideReason"),
    ReasonStrategy("form_reason", ReasonSource.FORM_DATA, "reason"),
    ReasonStrategy("form_notes", ReasonSource.FORM_DATA, "notes"),
)


def clean_text(value: Any) -> str | None:
    """
    Normalise a free-text field.

    Strings are trimmed (blank becomes None); numbers and booleans are
    stringified; containers are rendered as JSON.
    """
    if value is None:
        return None
    if isinstance(value, str):
        trimmed = value.strip()
        return trimmed or None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (Mapping, list)):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


def extract_override_reason(
    metadata: Mapping[str, Any] | None,
    form_data: Mapping[str, Any] | None,
    strategies: tuple[ReasonStrategy, ...] = DEFAULT_REASON_STRATEGIES,
) -> str | None:
    """Return the first non-blank reason found by ``strategies``, in order."""
    for strategy in strategies:
        reason = strategy.extract(metadata, form_data)
        if reason is not None:
            return reason
    return None
