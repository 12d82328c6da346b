"""Document chunker - deterministic text splitting for indexing."""

import re

_SENTENCE_END = re.compile(r"(?<=[.?!])\s+")


def _split_oversized(paragraph: str, max_chars: int) -> list[str]:
    """Split a paragraph longer than max_chars by sentences, then by hard cuts."""
    pieces: list[str] = []
    current = ""

    for sentence in _SENTENCE_END.split(paragraph):
        sentence = sentence.strip()
        if not sentence:
            continue

        # A single sentence over the limit is cut at fixed widths
        while len(sentence) > max_chars:
            if current:
                pieces.append(current)
                current = ""
            pieces.append(sentence[:max_chars])
            sentence = sentence[max_chars:].lstrip()

        if not sentence:
            continue

        candidate = f"{current} {sentence}" if current else sentence
        if len(candidate) > max_chars:
            pieces.append(current)
            current = sentence
        else:
            current = candidate

    if current:
        pieces.append(current)

    return pieces


def chunk_text(
    text: str,
    *,
    max_chars: int = 1000,
    overlap_chars: int = 200,
) -> list[str]:
    """Chunk document text into ordered, overlapping segments.

    Pure function with no I/O or randomness. Paragraphs (blank-line separated)
    are packed into chunks of at most ``max_chars``; each chunk after the first
    is prefixed with up to ``overlap_chars`` trailing characters of the previous
    chunk so retrieval keeps context across boundaries.

    Args:
        text: Raw document text
        max_chars: Maximum characters per chunk before overlap is added
        overlap_chars: Characters carried over from the previous chunk

    Returns:
        Non-empty, stripped chunks in document order

    Raises:
        ValueError: If overlap_chars is not smaller than max_chars
    """
    if overlap_chars >= max_chars:
        raise ValueError("overlap_chars must be smaller than max_chars")

    if not text or not text.strip():
        return []

    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    paragraphs = [p.strip() for p in normalized.split("\n\n") if p.strip()]

    packed: list[str] = []
    current = ""

    for para in paragraphs:
        if len(para) > max_chars:
            if current:
                packed.append(current)
                current = ""
            packed.extend(_split_oversized(para, max_chars))
            continue

        candidate = f"{current}\n\n{para}" if current else para
        if len(candidate) > max_chars:
            packed.append(current)
            current = para
        else:
            current = candidate

    if current:
        packed.append(current)

    if overlap_chars <= 0:
        return packed

    chunks = packed[:1]
    for previous, chunk in zip(packed, packed[1:]):
        tail = previous[-overlap_chars:].lstrip()
        chunks.append(f"{tail} {chunk}" if tail else chunk)

    return chunks
