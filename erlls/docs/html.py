"""Plain-text rendering of man page fragments."""

import re

# Applied in order, each over the whole fragment. Paragraph and line break
# tags must become newlines before the generic tag removal runs.
SUBSTITUTIONS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"</?p(\s[^>]*)?>", re.IGNORECASE), "\n"),
    (re.compile(r"<br\s*/?>", re.IGNORECASE), "\n"),
    (re.compile(r"<[^>]*>"), ""),
    (re.compile(r"[ \t\r\f\v]+$", re.MULTILINE), ""),
    (re.compile(r"\s+\Z"), ""),
    (re.compile(r"^[ \t\r\f\v]+", re.MULTILINE), ""),
    (re.compile(r"\A\s+"), ""),
    (re.compile(r"\n{3,}"), "\n\n"),
    (re.compile(r"&gt;"), ">"),
    (re.compile(r"&lt;"), "<"),
]


def strip_html(fragment: str) -> str:
    """Convert an extracted hypertext fragment into trimmed plain text."""
    text = fragment
    for pattern, replacement in SUBSTITUTIONS:
        text = pattern.sub(replacement, text)
    return text
