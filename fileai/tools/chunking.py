"""Split document text into token-bounded chunks on natural boundaries."""
import bisect
import logging
import math
import re
from typing import List, Optional

import tiktoken

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 3000
MIN_TIKTOKEN_BUDGET = 4


def get_encoding(name: str = "cl100k_base") -> tiktoken.Encoding:
    """Return tiktoken encoding for token counting."""
    return tiktoken.get_encoding(name)


class TextChunker:
    """
    Split text recursively on natural boundaries without exceeding a token budget.

    Tries to split on (in order):
    1. Blank lines (paragraph breaks)
    2. Single newlines (line breaks)
    3. Whitespace after ".", "!" or "?" (sentence boundaries, punctuation kept)
    4. Any whitespace (word boundaries)
    5. Characters (last resort, token-window slices re-measured to fit)

    Pieces are greedily packed into chunks and re-joined with a normalised
    separator, so words survive in order but whitespace between pieces may not.
    Chunks never overlap.
    """

    def __init__(
        self,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        encoding_name: str = "cl100k_base",
        chars_per_token: Optional[float] = None,
    ):
        if chars_per_token is not None and chars_per_token <= 0:
            raise ValueError(f"chars_per_token must be positive, got {chars_per_token}")

        # Every single character must fit on its own so a forced cut can always proceed
        min_tokens = MIN_TIKTOKEN_BUDGET if chars_per_token is None else math.ceil(1 / chars_per_token)
        if max_tokens < max(min_tokens, 1):
            raise ValueError(f"max_tokens must be at least {max(min_tokens, 1)}, got {max_tokens}")

        self.max_tokens = max_tokens
        self.chars_per_token = chars_per_token
        # The character estimate needs no tokenizer at all
        self.encoding = get_encoding(encoding_name) if chars_per_token is None else None

        # (pattern, joiner) in order of preference
        self.separators = [
            (re.compile(r"\n\s*\n"), "\n\n"),
            (re.compile(r"\n"), "\n"),
            (re.compile(r"(?<=[.!?])\s+"), " "),
            (re.compile(r"\s+"), " "),
        ]

    def count_tokens(self, text: str) -> int:
        """Count tokens in text (exact with tiktoken, estimated with chars_per_token)."""
        if self.encoding is None:
            return math.ceil(len(text) / self.chars_per_token)
        return len(self._encode(text))

    def _encode(self, text: str) -> List[int]:
        # Special-token markers in documents are plain text here
        return self.encoding.encode(text, disallowed_special=())

    def split_text(self, text: str) -> List[str]:
        """
        Split text into ordered chunks of at most max_tokens tokens each.

        Args:
            text: Document text

        Returns:
            List of non-empty chunks; empty list for empty or blank text
        """
        if not text.strip():
            return []

        chunks = self._split(text.strip(), 0)
        logger.debug(f"Split {len(text)} chars into {len(chunks)} chunks (max_tokens={self.max_tokens})")
        return chunks

    def _split(self, text: str, level: int) -> List[str]:
        if self.count_tokens(text) <= self.max_tokens:
            return [text]

        for depth in range(level, len(self.separators)):
            pattern, joiner = self.separators[depth]
            pieces = [p.strip() for p in pattern.split(text) if p.strip()]
            if len(pieces) > 1:
                return self._merge_pieces(pieces, joiner, depth)

        return self._force_split(text)

    def _merge_pieces(self, pieces: List[str], joiner: str, depth: int) -> List[str]:
        """Greedily pack pieces into chunks, recursing into pieces that are too large."""
        chunks = []
        current: List[str] = []
        current_tokens = 0

        for piece in pieces:
            piece_tokens = self.count_tokens(piece)
            if piece_tokens > self.max_tokens:
                if current:
                    chunks.extend(self._emit(current, joiner))
                    current, current_tokens = [], 0
                chunks.extend(self._split(piece, depth + 1))
                continue

            if not current:
                current, current_tokens = [piece], piece_tokens
                continue

            # Running estimate; _emit measures the packed chunk exactly
            added = self.count_tokens(joiner + piece)
            if current_tokens + added > self.max_tokens:
                chunks.extend(self._emit(current, joiner))
                current, current_tokens = [piece], piece_tokens
            else:
                current.append(piece)
                current_tokens += added

        if current:
            chunks.extend(self._emit(current, joiner))

        return chunks

    def _emit(self, pieces: List[str], joiner: str) -> List[str]:
        """Join packed pieces, halving the group if the joined text is over budget."""
        text = joiner.join(pieces)
        if len(pieces) == 1 or self.count_tokens(text) <= self.max_tokens:
            return [text]
        mid = len(pieces) // 2
        return self._emit(pieces[:mid], joiner) + self._emit(pieces[mid:], joiner)

    def _force_split(self, text: str) -> List[str]:
        """Cut a unit with no natural boundary into consecutive slices that fit."""
        logger.debug(f"Force-splitting unbroken run of {len(text)} chars")
        if self.encoding is None:
            size = max(1, int(self.max_tokens * self.chars_per_token))
            while size > 1 and self.count_tokens(text[:size]) > self.max_tokens:
                size -= 1
            return self._fixed_slices(text, size)

        tokens = self._encode(text)
        decoded, offsets = self.encoding.decode_with_offsets(tokens)
        if decoded != text:
            # Byte-level BPE never needs more than 4 tokens (UTF-8 bytes) per character
            return self._fixed_slices(text, self.max_tokens // MIN_TIKTOKEN_BUDGET)

        chunks = []
        start_char, start_tok = 0, 0
        while start_char < len(text):
            end_tok = start_tok + self.max_tokens
            while True:
                end_char = offsets[end_tok] if end_tok < len(tokens) else len(text)
                if end_char <= start_char:
                    end_char = start_char + 1
                piece = text[start_char:end_char]
                # Re-encoding a slice can differ from the token window at its edges
                if end_char - start_char == 1 or self.count_tokens(piece) <= self.max_tokens:
                    break
                end_tok -= 1
            chunks.append(piece)
            start_char = end_char
            start_tok = bisect.bisect_left(offsets, start_char)

        return chunks

    @staticmethod
    def _fixed_slices(text: str, size: int) -> List[str]:
        return [text[i:i + size] for i in range(0, len(text), size)]


def chunk_text(
    text: str,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    encoding_name: str = "cl100k_base",
    chars_per_token: Optional[float] = None,
) -> List[str]:
    """Split text into token-bounded chunks (functional wrapper around TextChunker)."""
    chunker = TextChunker(
        max_tokens=max_tokens,
        encoding_name=encoding_name,
        chars_per_token=chars_per_token,
    )
    return chunker.split_text(text)
