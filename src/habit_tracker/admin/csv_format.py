"""CSV rendering for admin exports."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from itertools import chain
from typing import Any

_NEEDS_QUOTING = (",", '"', "\r", "\n")


def escape_csv_field(value: Any) -> str:  # noqa: ANN401
    """One field: ``None`` is empty; quote when it holds a comma, quote, CR or LF."""
    text = "" if value is None else str(value)
    if any(ch in text for ch in _NEEDS_QUOTING):
        return '"' + text.replace('"', '""') + '"'
    return text


def format_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    """Header row plus data rows joined with ``\\n``, no trailing newline."""
    return "\n".join(",".join(escape_csv_field(v) for v in row) for row in chain([headers], rows))
