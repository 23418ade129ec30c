"""Flashcard normalization."""
import logging
from typing import Any, Dict, Iterable, List

from ailearn.services.quiz_service import DIFFICULTIES

logger = logging.getLogger(__name__)


def normalize_flashcards(raw_cards: Iterable[Dict[str, Any]], limit: int) -> List[Dict[str, str]]:
    """Keep well-formed cards (non-empty front and back), at most ``limit``."""
    cards = []
    for raw in raw_cards or []:
        if not isinstance(raw, dict):
            continue
        question = str(raw.get("question") or raw.get("front") or "").strip()
        answer = str(raw.get("answer") or raw.get("back") or "").strip()
        if not question or not answer:
            logger.warning("Dropping malformed generated flashcard")
            continue
        difficulty = str(raw.get("difficulty") or "").strip().lower()
        cards.append({
            "question": question,
            "answer": answer,
            "difficulty": difficulty if difficulty in DIFFICULTIES else "medium",
        })
        if len(cards) >= limit:
            break
    return cards
