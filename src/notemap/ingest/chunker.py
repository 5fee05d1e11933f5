"""Token-bounded text chunking that respects paragraph and sentence boundaries."""

import logging
import math
import re
from typing import Any, Iterator

import tiktoken

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
PARAGRAPH_SEP = "\n\n"

_PARAGRAPH_RE = re.compile(r"\n\s*\n")
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")


def estimate_tokens(text: str) -> int:
    """Rough token estimate (~4 chars per token)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class TiktokenCounter:
    """Exact token counts from a tiktoken encoding."""

    def __init__(self, encoding: str = "cl100k_base"):
        self.encoding = encoding
        self.encoder = tiktoken.get_encoding(encoding)

    def count(self, text: str) -> int:
        return len(self.encoder.encode(text, disallowed_special=()))


class Chunker:
    """Split text into overlapping chunks of at most ``max_tokens`` tokens.

    Args:
        max_tokens: Hard upper bound on tokens per chunk.
        overlap_tokens: Tokens of trailing context carried from one chunk into the next.
        tokenizer: Object with a ``count(text) -> int`` method. When None, or when it
            raises, token counts fall back to ``estimate_tokens``.
    """

    def __init__(self, max_tokens: int = 400, overlap_tokens: int = 50, tokenizer: Any = None):
        if max_tokens < 1:
            raise ValueError(f"max_tokens must be >= 1, got {max_tokens}")
        if overlap_tokens < 0 or overlap_tokens >= max_tokens:
            raise ValueError(
                f"overlap_tokens must be in [0, max_tokens), got {overlap_tokens} (max_tokens={max_tokens})"
            )
        self.max_tokens = max_tokens
        self.overlap_tokens = overlap_tokens
        self.tokenizer = tokenizer

    def count_tokens(self, text: str) -> int:
        if not text:
            return 0
        if self.tokenizer is not None:
            try:
                return self.tokenizer.count(text)
            except Exception as e:
                logger.warning(f"Tokenizer failed, using character estimate: {e}")
        return estimate_tokens(text)

    def chunk(self, text: str) -> Iterator[str]:
        """Yield the chunks of ``text`` in order.

        Empty or whitespace-only text yields a single empty chunk. Text that already
        fits is yielded unchanged. Otherwise paragraphs are packed greedily, oversized
        paragraphs are split into sentences and oversized sentences into fixed windows;
        every chunk after the first starts with the tail of the one before it.
        """
        if not text or not text.strip():
            yield ""
            return

        if self.count_tokens(text) <= self.max_tokens:
            yield text
            return

        current = ""
        for segment, sep in self._segments(text):
            candidate = f"{current}{sep}{segment}" if current else segment
            if self.count_tokens(candidate) <= self.max_tokens:
                current = candidate
                continue
            if not current:
                # a single character the tokenizer still counts over budget
                current = segment
                continue
            yield current
            current = self._seed(current, segment)

        if current:
            yield current

    def _segments(self, text: str) -> Iterator[tuple[str, str]]:
        """Yield (segment, separator) pairs, each segment within the token budget."""
        for paragraph in _PARAGRAPH_RE.split(text):
            paragraph = paragraph.strip()
            if not paragraph:
                continue
            if self.count_tokens(paragraph) <= self.max_tokens:
                yield paragraph, PARAGRAPH_SEP
                continue

            sentences = [s for s in _SENTENCE_RE.split(paragraph) if s.strip()]
            for i, sentence in enumerate(sentences):
                sep = PARAGRAPH_SEP if i == 0 else " "
                if self.count_tokens(sentence) <= self.max_tokens:
                    yield sentence, sep
                    continue
                for j, piece in enumerate(self._windows(sentence)):
                    yield piece, sep if j == 0 else ""

    def _windows(self, text: str) -> Iterator[str]:
        """Fixed-size character windows, preferring to break after whitespace.

        Windows are sized to leave room for the overlap seed. The cursor always
        advances, so this terminates for any tokenizer behaviour.
        """
        budget = self.max_tokens - self.overlap_tokens
        window = budget * CHARS_PER_TOKEN
        start = 0
        n = len(text)

        while start < n:
            end = min(start + window, n)
            if end < n:
                brk = max(text.rfind(" ", start, end), text.rfind("\n", start, end))
                if brk > start + int(window * 0.7):
                    end = brk + 1
            while end - start > 1 and self.count_tokens(text[start:end]) > budget:
                end = start + max(1, (end - start) * 3 // 4)
            yield text[start:end]
            start = end

    def _tail(self, text: str) -> str:
        """Roughly the last ``overlap_tokens`` tokens of ``text``, cut at a word boundary."""
        if self.overlap_tokens <= 0 or not text:
            return ""
        tail = text[-self.overlap_tokens * CHARS_PER_TOKEN:]
        if len(tail) < len(text) and not text[-len(tail) - 1].isspace():
            ws = re.search(r"\s", tail)
            if ws and ws.end() < len(tail):
                tail = tail[ws.end():]
        return tail.strip()

    def _seed(self, previous: str, segment: str) -> str:
        """Start a new chunk with overlap from ``previous``, shrinking it to fit."""
        overlap = self._tail(previous)
        while overlap:
            candidate = f"{overlap}{PARAGRAPH_SEP}{segment}"
            if self.count_tokens(candidate) <= self.max_tokens:
                return candidate
            overlap = overlap[len(overlap) // 2 + 1:].strip()
        return segment


def build_chunker(config: dict[str, Any]) -> Chunker:
    """Build a Chunker from the ``chunking`` config section."""
    cfg = config.get("chunking", {})
    tokenizer = None
    encoding = cfg.get("encoding")
    if encoding:
        try:
            tokenizer = TiktokenCounter(encoding)
        except Exception as e:
            logger.warning(f"Tokenizer '{encoding}' unavailable, using ~{CHARS_PER_TOKEN} chars/token: {e}")
    return Chunker(
        max_tokens=cfg.get("max_tokens", 400),
        overlap_tokens=cfg.get("overlap_tokens", 50),
        tokenizer=tokenizer,
    )


def chunk_text(text: str, max_tokens: int = 400, overlap_tokens: int = 50, tokenizer: Any = None) -> list[str]:
    """Chunk ``text`` in one call."""
    return list(Chunker(max_tokens, overlap_tokens, tokenizer).chunk(text))
