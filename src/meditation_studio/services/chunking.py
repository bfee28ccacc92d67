"""SSML chunking under the speech engine's per-request length ceiling.

The speech engine rejects payloads longer than ``max_length`` characters, so
long scripts are split into several ``<speak>`` documents. Splits happen only
after ``<break/>`` directives: they never nest and need no closing tag. Any
paired tag still open at a split (normally the pacing ``<prosody>``) is closed
at the end of the chunk and reopened at the start of the next one, so every
chunk is valid on its own and synthesizes with the same pacing.
"""

import re
from dataclasses import dataclass, field

from meditation_studio.domain.errors import ChunkingError

DEFAULT_MAX_LENGTH = 3000

SPEAK_OPEN = "<speak>"
SPEAK_CLOSE = "</speak>"
PACING_OPEN = '<prosody rate="slow">'
PACING_CLOSE = "</prosody>"

_SPEAK_TAG = re.compile(r"</?speak\b[^>]*>", re.IGNORECASE)
_RATE_CONTROL = re.compile(r"<prosody[^>]*\brate\s*=", re.IGNORECASE)
_PAUSE_MARKER = re.compile(r"<break\b[^>]*/>", re.IGNORECASE)
_TAG = re.compile(r"<(/?)([A-Za-z][\w:.-]*)[^>]*?(/?)>")
_TOKEN = re.compile(r"<[^>]*>|\s+|[^<\s]+")
_ANY_TAG = re.compile(r"<[^>]*>")


def chunk_ssml(ssml: str, max_length: int = DEFAULT_MAX_LENGTH) -> list[str]:
    """Split SSML into ordered ``<speak>`` payloads of at most ``max_length``.

    Content without a rate directive is wrapped in a slow ``<prosody>`` tag.
    A pause-delimited segment that alone exceeds the budget is split further
    at whitespace outside tags, and single words longer than the budget are
    split by character.

    Raises ``ChunkingError`` when a single tag cannot fit in any chunk.
    """
    content = _SPEAK_TAG.sub("", ssml).strip()
    has_rate_control = bool(_RATE_CONTROL.search(content))
    pacing_overhead = 0 if has_rate_control else len(PACING_OPEN) + len(PACING_CLOSE)
    safe_max = max_length - len(SPEAK_OPEN) - len(SPEAK_CLOSE) - pacing_overhead
    if not has_rate_control:
        content = f"{PACING_OPEN}{content}{PACING_CLOSE}"

    if len(content) <= safe_max:
        return [f"{SPEAK_OPEN}{content}{SPEAK_CLOSE}"]

    builder = _ChunkBuilder(max_length=max_length)
    for segment in split_at_pauses(content):
        builder.add_segment(segment)
    return builder.finish()


def split_at_pauses(content: str) -> list[str]:
    """Split markup after each pause marker, keeping the marker on its segment."""
    segments: list[str] = []
    start = 0
    for match in _PAUSE_MARKER.finditer(content):
        segments.append(content[start : match.end()])
        start = match.end()
    tail = content[start:]
    if tail.strip():
        segments.append(tail)
    return segments


def open_tags(markup: str) -> list[str]:
    """Return tags still open at the end of ``markup``, outermost first."""
    stack: list[tuple[str, str]] = []
    for match in _TAG.finditer(markup):
        closing, name, self_closing = match.groups()
        if self_closing:
            continue
        if not closing:
            stack.append((name.lower(), match.group(0)))
            continue
        for index in range(len(stack) - 1, -1, -1):
            if stack[index][0] == name.lower():
                del stack[index:]
                break
    return [tag for _, tag in stack]


def _tag_name(tag: str) -> str:
    match = _TAG.match(tag)
    if match is None:
        raise ChunkingError(f"Not a tag: {tag!r}")
    return match.group(2)


def _has_text(markup: str) -> bool:
    return bool(_ANY_TAG.sub("", markup).strip())


def _render(prefix: list[str], body: str) -> str:
    inner = "".join(prefix) + body.strip()
    closing = "".join(f"</{_tag_name(tag)}>" for tag in reversed(open_tags(inner)))
    return f"{SPEAK_OPEN}{inner}{closing}{SPEAK_CLOSE}"


@dataclass
class _ChunkBuilder:
    """Greedy accumulator that emits independently valid chunks."""

    max_length: int
    chunks: list[str] = field(default_factory=list)
    prefix: list[str] = field(default_factory=list)
    body: str = ""

    def fits(self, body: str) -> bool:
        return len(_render(self.prefix, body)) <= self.max_length

    def close(self) -> None:
        inner = "".join(self.prefix) + self.body.strip()
        self.chunks.append(_render(self.prefix, self.body))
        self.prefix = open_tags(inner)
        self.body = ""

    def add_segment(self, segment: str) -> None:
        if self.fits(self.body + segment):
            self.body += segment
            return
        if _has_text(self.body):
            self.close()
            if self.fits(segment):
                self.body = segment
                return
        self._add_oversized(segment)

    def _add_oversized(self, segment: str) -> None:
        for token in _TOKEN.findall(segment):
            if self.fits(self.body + token):
                self.body += token
                continue
            if _has_text(self.body):
                self.close()
                if token.isspace():
                    continue
                if self.fits(token):
                    self.body = token
                    continue
            if token.startswith("<"):
                raise ChunkingError(
                    f"Tag of length {len(token)} cannot fit in a "
                    f"{self.max_length}-character chunk"
                )
            self._add_long_word(token)

    def _add_long_word(self, word: str) -> None:
        remaining = word
        while remaining:
            room = (
                self.max_length
                - len(_render(self.prefix, self.body + remaining[:1]))
                + 1
            )
            if room <= 0:
                if not _has_text(self.body):
                    raise ChunkingError(
                        "Open tags leave no room in a "
                        f"{self.max_length}-character chunk"
                    )
                self.close()
                continue
            self.body += remaining[:room]
            remaining = remaining[room:]

    def finish(self) -> list[str]:
        if _has_text(self.body):
            self.close()
        return self.chunks
