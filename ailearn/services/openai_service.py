"""OpenAI LLM service for quiz and flashcard generation."""
import json
import logging
from typing import Dict, List, Optional

from fastapi import Depends
from openai import OpenAI, OpenAIError

from ailearn.core.config import Settings, get_settings
from ailearn.core.exceptions import AIServiceError
from ailearn.utils.text_chunker import split_into_chunks

logger = logging.getLogger(__name__)

# Keep prompts inside the model's context window
MAX_CONTEXT_CHUNKS = 40


class OpenAIService:
    """Service for interacting with OpenAI API."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", timeout: Optional[float] = None):
        """Initialize OpenAI client."""
        self.client = OpenAI(api_key=api_key, timeout=timeout)
        self.model = model

    def generate_quiz_questions(self, text: str, num_questions: int = 5, difficulty: str = "medium") -> List[Dict]:
        """
        Generate multiple-choice questions from document text.

        Args:
            text: Extracted document text
            num_questions: Number of questions to generate
            difficulty: easy, medium, hard, or mixed

        Returns:
            List of question dictionaries with structure:
            {
                "question": str,
                "options": List[str],
                "correct_answer": str (option text or A/B/C/D),
                "explanation": str,
                "difficulty": "easy" | "medium" | "hard"
            }
        """
        difficulty_guidelines = {
            "easy": "Focus on recall and identification questions.",
            "medium": "Focus on explanation and comparison questions.",
            "hard": "Focus on application and reasoning questions.",
            "mixed": "Create a mix of easy, medium, and hard questions.",
        }
        guideline = difficulty_guidelines.get(difficulty, difficulty_guidelines["medium"])

        system_prompt = f"""You are an expert quiz creator for educational content.
Your task is to generate high-quality multiple-choice questions based on the provided document.

Guidelines:
- {guideline}
- Questions must be clear, unambiguous, and directly answerable from the content
- Provide exactly 4 options with exactly one correct answer
- correct_answer must repeat the text of the correct option
- Give a one or two sentence explanation of why the answer is correct
- Return ONLY valid JSON in the specified format

Output format:
{{
  "questions": [
    {{
      "question": "The question text",
      "options": ["Option 1", "Option 2", "Option 3", "Option 4"],
      "correct_answer": "Option 2",
      "explanation": "Why Option 2 is correct",
      "difficulty": "easy|medium|hard"
    }}
  ]
}}"""

        user_prompt = f"""Based on the following content, generate exactly {num_questions} quiz questions with difficulty level: {difficulty}

CONTENT:
{self._prepare_context(text)}

Return your response as valid JSON following the specified format."""

        result = self._complete_json(system_prompt, user_prompt)
        return result.get("questions") or []

    def generate_flashcards(self, text: str, count: int = 10) -> List[Dict]:
        """
        Generate question/answer flashcards from document text.

        Returns:
            List of {"question": str, "answer": str, "difficulty": str}
        """
        system_prompt = """You create concise study flashcards from educational content.

Guidelines:
- The front (question) asks about one key term, fact or concept
- The back (answer) is short and self-contained
- Rate each card easy, medium or hard
- Return ONLY valid JSON in the specified format

Output format:
{
  "flashcards": [
    {"question": "Front of the card", "answer": "Back of the card", "difficulty": "easy|medium|hard"}
  ]
}"""

        user_prompt = f"""Create exactly {count} flashcards from the following content.

CONTENT:
{self._prepare_context(text)}

Return your response as valid JSON following the specified format."""

        result = self._complete_json(system_prompt, user_prompt)
        return result.get("flashcards") or []

    def _complete_json(self, system_prompt: str, user_prompt: str) -> Dict:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=0.7,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            logger.error("OpenAI request failed: %s", e)
            raise AIServiceError(f"Error generating content from OpenAI: {e}")

        content = response.choices[0].message.content or ""
        try:
            result = json.loads(content)
        except json.JSONDecodeError:
            logger.error("OpenAI returned non-JSON content (%d chars)", len(content))
            raise AIServiceError("AI service returned an invalid response")

        if not isinstance(result, dict):
            raise AIServiceError("AI service returned an invalid response")
        return result

    def _prepare_context(self, text: str) -> str:
        """Prepare context string from document chunks."""
        chunks = split_into_chunks(text)[:MAX_CONTEXT_CHUNKS]
        return "\n---\n".join(f"[Chunk {idx}]\n{chunk}" for idx, chunk in enumerate(chunks))


def get_ai_service(settings: Settings = Depends(get_settings)) -> OpenAIService:
    """Dependency building the generation service; overridden in tests."""
    return OpenAIService(settings.OPENAI_API_KEY, settings.OPENAI_MODEL, settings.OPENAI_TIMEOUT_SECONDS)
