"""Tolerant HTML tag scanner.

Walks raw HTML text and yields start/end tags with their attributes,
without building a DOM. Grammar (tag and attribute names are
case-insensitive):

    comment   := "<!--" any* "-->"
    tag       := "<" "/"? name (space+ attribute)* space* "/"? ">"
    attribute := attr-name (space* "=" space* value)?
    value     := '"' [^"]* '"' | "'" [^']* "'" | [^ \\t\\n"'=<>`]+

Known approximations:
- Text inside <script> and <style> is scanned like markup, so tag-shaped
  strings in scripts are reported as tags.
- A tag whose attribute list does not fit the grammar (an unbalanced
  quote, attributes not separated by whitespace) is skipped.
- When an attribute repeats, the first occurrence wins.
- Comments are skipped, so markup inside conditional comments is missed.
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass, field

_VALUE = r"""(?:"[^"]*"|'[^']*'|[^\s"'=<>`]+)"""
_ATTRIBUTE = rf"""[^\s"'>/=]+(?:\s*=\s*{_VALUE})?"""

TAG_RE = re.compile(
    rf"""<!--.*?-->|<(?P<closing>/?)(?P<name>[A-Za-z][A-Za-z0-9:-]*)(?P<attrs>(?:\s+{_ATTRIBUTE})*)\s*/?>""",
    re.DOTALL,
)
ATTR_RE = re.compile(
    r"""(?P<name>[^\s"'>/=]+)(?:\s*=\s*(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'|(?P<bare>[^\s"'=<>`]+)))?"""
)


@dataclass
class Tag:
    """A start or end tag found in the document.

    Attributes:
        name: Lowercased tag name.
        closing: True for end tags (``</name>``).
        raw: Exact markup of the tag.
        attrs: Lowercased attribute name -> value (None when valueless).
        start: Offset of ``<`` in the document.
    """

    name: str
    closing: bool
    raw: str
    start: int
    attrs: dict[str, str | None] = field(default_factory=dict)

    def attr(self, name: str) -> str | None:
        return self.attrs.get(name)


def parse_attributes(text: str) -> dict[str, str | None]:
    """Parse an attribute list into a dict, first occurrence winning."""
    attrs: dict[str, str | None] = {}
    for match in ATTR_RE.finditer(text):
        name = match.group("name").lower()
        if name in attrs:
            continue
        value = match.group("dq")
        if value is None:
            value = match.group("sq")
        if value is None:
            value = match.group("bare")
        attrs[name] = value
    return attrs


def iter_tags(html: str) -> Iterator[Tag]:
    """Yield tags in document order, skipping comments."""
    for match in TAG_RE.finditer(html):
        name = match.group("name")
        if name is None:
            continue
        yield Tag(
            name=name.lower(),
            closing=bool(match.group("closing")),
            raw=match.group(0),
            start=match.start(),
            attrs=parse_attributes(match.group("attrs") or ""),
        )
