"""Quiz construction, grading and completion."""
import logging
from typing import Any, Dict, Iterable, List, Optional

from ailearn.core.exceptions import ValidationError
from ailearn.db.base import utcnow
from ailearn.models.quiz import Quiz

logger = logging.getLogger(__name__)

DIFFICULTIES = ("easy", "medium", "hard")


def _letter_index(value: str, option_count: int) -> Optional[int]:
    """Map ``A``/``b``/... onto an option position."""
    if len(value) == 1 and value.isalpha():
        idx = ord(value.upper()) - ord("A")
        if 0 <= idx < option_count:
            return idx
    return None


def _match_option(value: str, options: List[str]) -> Optional[str]:
    """Resolve a submitted value (option text or letter) to an option text."""
    value = value.strip()
    for opt in options:
        if opt.strip().lower() == value.lower():
            return opt
    idx = _letter_index(value, len(options))
    return options[idx] if idx is not None else None


def normalize_questions(raw_questions: Iterable[Dict[str, Any]], default_difficulty: str = "medium") -> List[Dict]:
    """
    Turn generator output into stored question dicts.

    Questions without text, with fewer than two options, or whose answer is
    not one of the options are dropped.
    """
    fallback = default_difficulty if default_difficulty in DIFFICULTIES else "medium"
    questions = []
    for raw in raw_questions or []:
        if not isinstance(raw, dict):
            continue
        text = str(raw.get("question") or raw.get("question_text") or "").strip()
        options = [str(o).strip() for o in raw.get("options") or [] if str(o).strip()]
        answer = str(raw.get("correct_answer") or raw.get("correctAnswer") or "").strip()

        correct = _match_option(answer, options) if answer else None
        if not text or len(options) < 2 or correct is None:
            logger.warning("Dropping malformed generated question: %.80s", text or "<empty>")
            continue

        difficulty = str(raw.get("difficulty") or "").strip().lower()
        questions.append({
            "question": text,
            "options": [{"option": opt, "is_correct": opt == correct} for opt in options],
            "correct_answer": correct,
            "explanation": str(raw.get("explanation") or "").strip(),
            "difficulty": difficulty if difficulty in DIFFICULTIES else fallback,
        })
    return questions


def is_answer_correct(question: Dict[str, Any], selected_answer: str) -> bool:
    """Case/whitespace-insensitive match; a single letter picks the option at that position."""
    options = [opt["option"] for opt in question.get("options", [])]
    selected = _match_option(selected_answer, options) or selected_answer.strip()
    return selected.lower() == str(question["correct_answer"]).strip().lower()


def compute_score(user_answers: Iterable[Dict[str, Any]]) -> int:
    return sum(1 for answer in user_answers if answer.get("is_correct"))


def record_answer(quiz: Quiz, question_index: int, selected_answer: str) -> Dict[str, Any]:
    """
    Record (or replace) the answer for one question and refresh the score.

    Raises:
        ValidationError: quiz already completed, or index out of range
    """
    if quiz.is_completed:
        raise ValidationError("Quiz has already been submitted")

    total = len(quiz.questions)
    if not 0 <= question_index < total:
        raise ValidationError.from_fields(
            [{"field": "questionIndex", "message": f"Question index must be between 0 and {total - 1}"}],
            "Invalid question index",
        )

    answer = {
        "question_index": question_index,
        "selected_answer": selected_answer,
        "is_correct": is_answer_correct(quiz.questions[question_index], selected_answer),
    }
    answers = [a for a in quiz.user_answers or [] if a["question_index"] != question_index]
    answers.append(answer)
    answers.sort(key=lambda a: a["question_index"])

    # Assign new lists so the JSON columns are flagged dirty
    quiz.user_answers = answers
    quiz.score = compute_score(answers)
    quiz.answer_attempts = (quiz.answer_attempts or 0) + 1
    return answer


def submit_quiz(quiz: Quiz, answers: Iterable[Dict[str, Any]] = ()) -> Quiz:
    """Record a final batch of answers and mark the quiz completed."""
    if quiz.is_completed:
        raise ValidationError("Quiz has already been submitted")

    for answer in answers:
        record_answer(quiz, answer["question_index"], answer["selected_answer"])

    quiz.completed_at = utcnow()
    logger.info("Quiz %s completed with score %s/%s", quiz.id, quiz.score, quiz.total_questions)
    return quiz


def build_results(quiz: Quiz) -> Dict[str, Any]:
    """Full per-question breakdown, answer key included."""
    answered = {a["question_index"]: a for a in quiz.user_answers or []}
    results = []
    for idx, question in enumerate(quiz.questions):
        answer = answered.get(idx)
        results.append({
            "question_index": idx,
            "question": question["question"],
            "options": [opt["option"] for opt in question["options"]],
            "correct_answer": question["correct_answer"],
            "explanation": question.get("explanation") or None,
            "selected_answer": answer["selected_answer"] if answer else None,
            "is_correct": bool(answer and answer["is_correct"]),
        })

    total = quiz.total_questions or 0
    return {
        "quiz_id": quiz.id,
        "title": quiz.title,
        "score": quiz.score,
        "total_questions": total,
        "percentage": round(quiz.score / total * 100, 2) if total else 0.0,
        "completed_at": quiz.completed_at,
        "results": results,
    }
