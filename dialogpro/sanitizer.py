"""
Inbound message validation and outbound HTML reduction.
"""

from __future__ import annotations

import html
import math
import re
from html.parser import HTMLParser
from typing import Dict, List, Optional, Tuple

from .errors import Ok, Result, empty_message, too_long, unsafe_content


MAX_MESSAGE_LENGTH = 1000

# Characters per token used for budget estimates.
CHARS_PER_TOKEN = 4

XSS_PATTERNS: List[re.Pattern] = [
    re.compile(r"<[^>]*>"),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
    re.compile(r"data:\s*\w+", re.IGNORECASE),
]

# Insertion order is the replacement order.
EMOTICONS: Dict[str, str] = {
    ":)": "smile",
    ":(": "sad",
    ";)": "wink",
    ":D": "grin",
}

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WHITESPACE_RE = re.compile(r"\s+")


def contains_unsafe_content(text: str) -> bool:
    return any(pattern.search(text) for pattern in XSS_PATTERNS)


def normalize_text(text: str) -> str:
    """
    Single-line cleanup: drop control characters, collapse whitespace runs
    (including newlines and tabs) into one space and trim the ends.
    """
    text = _CONTROL_CHARS_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def convert_emoticons(text: str) -> str:
    for emoticon, word in EMOTICONS.items():
        text = text.replace(emoticon, word)
    return text


def validate(text: str) -> Result[str]:
    """
    Validate a raw user message and return the text to forward upstream.

    Rejections, checked in order: blank after trimming, longer than
    MAX_MESSAGE_LENGTH characters, or matching one of XSS_PATTERNS.
    """
    if not text or not text.strip():
        return empty_message()
    if len(text) > MAX_MESSAGE_LENGTH:
        return too_long(MAX_MESSAGE_LENGTH)
    if contains_unsafe_content(text):
        return unsafe_content()
    return Ok(convert_emoticons(normalize_text(text)))


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


# Tags a bot reply may keep, with the attributes allowed on each.
ALLOWED_TAGS: Dict[str, Tuple[str, ...]] = {
    "a": ("href", "title", "target", "rel"),
    "abbr": ("title",),
    "b": (),
    "blockquote": ("cite",),
    "br": (),
    "code": (),
    "del": (),
    "em": (),
    "h1": (),
    "h2": (),
    "h3": (),
    "h4": (),
    "h5": (),
    "h6": (),
    "hr": (),
    "i": (),
    "li": (),
    "ol": (),
    "p": (),
    "pre": (),
    "s": (),
    "span": (),
    "strong": (),
    "sub": (),
    "sup": (),
    "u": (),
    "ul": (),
}
VOID_TAGS = frozenset({"br", "hr"})
# Elements whose text content is dropped along with the tag.
DROP_CONTENT_TAGS = frozenset({"script", "style", "iframe", "object", "embed", "template"})
SAFE_URL_SCHEMES = ("http://", "https://", "mailto:")
URL_ATTRIBUTES = frozenset({"href", "cite"})


class _SafeHTMLFilter(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.parts: List[str] = []
        self._skip_depth = 0

    def _render_attrs(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> str:
        allowed = ALLOWED_TAGS[tag]
        rendered = []
        for name, value in attrs:
            if name not in allowed or value is None:
                continue
            if name in URL_ATTRIBUTES and not value.strip().lower().startswith(SAFE_URL_SCHEMES):
                continue
            rendered.append(f' {name}="{html.escape(value, quote=True)}"')
        return "".join(rendered)

    def handle_starttag(self, tag, attrs):
        if tag in DROP_CONTENT_TAGS:
            self._skip_depth += 1
            return
        if self._skip_depth or tag not in ALLOWED_TAGS:
            return
        self.parts.append(f"<{tag}{self._render_attrs(tag, attrs)}>")

    def handle_startendtag(self, tag, attrs):
        if self._skip_depth or tag not in ALLOWED_TAGS:
            return
        self.parts.append(f"<{tag}{self._render_attrs(tag, attrs)} />")

    def handle_endtag(self, tag):
        if tag in DROP_CONTENT_TAGS:
            self._skip_depth = max(0, self._skip_depth - 1)
            return
        if self._skip_depth or tag not in ALLOWED_TAGS or tag in VOID_TAGS:
            return
        self.parts.append(f"</{tag}>")

    def handle_data(self, data):
        if not self._skip_depth:
            self.parts.append(html.escape(data, quote=False))


def safe_html(text: str) -> str:
    """
    Reduce upstream text to a post-content HTML subset.

    Unknown tags are removed but their text is kept; script-like elements
    lose their content too. Link targets must be http(s) or mailto.
    """
    if not text:
        return ""
    parser = _SafeHTMLFilter()
    parser.feed(text)
    parser.close()
    return "".join(parser.parts)


__all__ = [
    "MAX_MESSAGE_LENGTH",
    "CHARS_PER_TOKEN",
    "XSS_PATTERNS",
    "EMOTICONS",
    "contains_unsafe_content",
    "normalize_text",
    "convert_emoticons",
    "validate",
    "estimate_tokens",
    "safe_html",
]
