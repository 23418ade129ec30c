"""Split long document text into prompt-sized pieces."""
import re
from typing import List

DEFAULT_CHUNK_SIZE = 1000  # characters
DEFAULT_OVERLAP = 200  # characters


def _split_into_paragraphs(text: str) -> List[str]:
    return [p.strip() for p in re.split(r"\n\s*\n+", text) if p.strip()]


def _split_into_sentences(text: str) -> List[str]:
    return [s.strip() for s in re.split(r"(?<=[.!?])\s+", text) if s.strip()]


def split_into_chunks(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
) -> List[str]:
    """
    Split text into chunks of at most roughly ``chunk_size`` characters.

    Paragraph boundaries are kept where possible; oversized paragraphs are
    split on sentences. Each new chunk starts with the last ``overlap``
    characters of the previous one.
    """
    if not text or not text.strip():
        return []

    pieces: List[str] = []
    for para in _split_into_paragraphs(text):
        if len(para) > chunk_size:
            pieces.extend(_split_into_sentences(para))
        else:
            pieces.append(para)

    chunks: List[str] = []
    current = ""
    for piece in pieces:
        if current and len(current) + len(piece) + 1 > chunk_size:
            chunks.append(current.strip())
            tail = current[-overlap:] if overlap > 0 else ""
            current = f"{tail} {piece}" if tail else piece
        else:
            current = f"{current}\n{piece}" if current else piece

    if current.strip():
        chunks.append(current.strip())
    return chunks
