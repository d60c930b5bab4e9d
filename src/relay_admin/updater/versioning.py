"""Version label parsing and comparison.

Labels are compared as numeric ``(major, minor, patch)`` triples so that
``1.2.0 < 1.10.0``.  Missing or non-numeric components count as zero and a
leading ``v`` is ignored.
"""

from __future__ import annotations

import re

_NUMERIC_PREFIX_RE = re.compile(r"^\d+")


def parse_version(label: str) -> tuple[int, int, int]:
    """Parse a version label into a ``(major, minor, patch)`` triple."""
    text = label.strip()
    if text[:1] in ("v", "V"):
        text = text[1:]
    # Drop pre-release / build suffixes: 1.2.3-rc.1+build -> 1.2.3
    text = re.split(r"[-+]", text, maxsplit=1)[0]

    parts: list[int] = []
    for piece in text.split(".")[:3]:
        m = _NUMERIC_PREFIX_RE.match(piece)
        parts.append(int(m.group(0)) if m else 0)
    while len(parts) < 3:
        parts.append(0)
    return parts[0], parts[1], parts[2]


def compare_versions(current: str, latest: str) -> int:
    """Return a negative number, zero or a positive number.

    Negative means *current* is older than *latest*.
    """
    cur = parse_version(current)
    new = parse_version(latest)
    if cur < new:
        return -1
    if cur > new:
        return 1
    return 0


def normalize_tag(tag: str) -> str:
    """Strip the leading ``v`` from a release tag (``v1.2.3`` -> ``1.2.3``)."""
    return tag[1:] if tag[:1] in ("v", "V") else tag
