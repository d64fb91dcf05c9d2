"""Plain-text blocks for multi-line log records.

Resolving a show produces several related values at once (the label, the
winning rule, the catalog venue, the run position). They are logged as one
titled block with aligned labels instead of a scatter of single-line records.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from textwrap import wrap
from typing import Union

WRAP_WIDTH = 100
MAX_LABEL_WIDTH = 20
INDENT = "    "

Fields = Union[Mapping[str, object], Sequence[tuple[str, object]]]


def format_value(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, float):
        return f"{value:.2f}"
    if isinstance(value, (list, tuple, set, frozenset)):
        return ", ".join(format_value(item) for item in value if item is not None)
    return str(value).strip()


def _wrapped(text: str, width: int) -> list[str]:
    lines = [segment for raw in text.splitlines() for segment in (wrap(raw, width=width) or [""])]
    return lines or [""]


class LogBlock:
    """A titled block of aligned ``label: value`` lines and bulleted sections."""

    def __init__(self, title: str, *, pad_top: bool = True, width: int = WRAP_WIDTH) -> None:
        self.width = width
        self.lines: list[str] = [""] if pad_top else []
        self.lines.extend([title, "=" * len(title)])

    def fields(self, fields: Fields, *, skip_empty: bool = False) -> LogBlock:
        items = list(fields.items()) if isinstance(fields, Mapping) else list(fields)
        rendered = [(str(label), format_value(value)) for label, value in items]
        if skip_empty:
            rendered = [(label, text) for label, text in rendered if text]
        if not rendered:
            return self

        label_width = min(max(len(label) for label, _ in rendered), MAX_LABEL_WIDTH)
        value_width = max(self.width - len(INDENT) - label_width - 2, 30)
        for label, text in rendered:
            first, *rest = _wrapped(text, value_width)
            self.lines.append(f"{INDENT}{label:<{label_width}}: {first}".rstrip())
            self.lines.extend(f"{INDENT}{'':<{label_width}}  {line}" for line in rest)
        return self

    def section(self, heading: str, entries: Iterable[object], *, empty_label: str = "(none)") -> LogBlock:
        if self.lines[-1] != "":
            self.lines.append("")
        self.lines.append(f"{heading}:")
        texts = [format_value(entry) for entry in entries if entry is not None]
        if not texts:
            self.lines.append(f"{INDENT}{empty_label}")
            return self
        for text in texts:
            first, *rest = _wrapped(text, self.width - len(INDENT) - 2)
            self.lines.append(f"{INDENT}- {first}".rstrip())
            self.lines.extend(f"{INDENT}  {line}" for line in rest)
        return self

    def render(self) -> str:
        return "\n".join(self.lines).rstrip()


def render_fields_block(
    title: str,
    fields: Fields,
    *,
    pad_top: bool = True,
    skip_empty: bool = False,
) -> str:
    return LogBlock(title, pad_top=pad_top).fields(fields, skip_empty=skip_empty).render()


def render_section_block(
    title: str,
    sections: Sequence[tuple[str, Iterable[object]]],
    *,
    pad_top: bool = True,
) -> str:
    block = LogBlock(title, pad_top=pad_top)
    for heading, entries in sections:
        block.section(heading, entries)
    return block.render()
