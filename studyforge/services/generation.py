import asyncio
import logging
from typing import Any, Dict, List, Optional, Union

import openai
from openai import AsyncOpenAI
from pydantic import ValidationError

from studyforge.core.config import Settings
from studyforge.core.errors import (
    GenerationFailed,
    InvalidModelResponse,
    NoContent,
    NotConfigured,
)
from studyforge.models.content import (
    GeneratedNotes,
    GeneratedQuiz,
    NoteSection,
    NotesFormat,
    QuizQuestion,
)
from studyforge.utils.model_json import Malformed, parse_model_json, strip_code_fences

logger = logging.getLogger(__name__)

ENGINE_NAME = "openai"
DEFAULT_QUIZ_TITLE = "Generated Quiz"
DEFAULT_NOTES_TITLE = "Study Notes"

_PLACEHOLDER_KEYS = {"", "change_me", "sk-placeholder-key"}

NotesResult = Union[GeneratedNotes, str]

STRUCTURED_NOTES_PROMPT = """You are an AI assistant that creates comprehensive, structured notes from presentation content.
Analyze the following slide content and generate well-organized, annotative notes that would help university students learn effectively.

Content from "{label}":
{text}

Please create structured notes in JSON format with the following structure:
{{
  "title": "Main topic/title for the notes",
  "sections": [
    {{
      "heading": "Section heading",
      "content": "Detailed explanation of the section content",
      "keyPoints": ["Important point 1", "Important point 2", "Important point 3"]
    }}
  ],
  "summary": "Brief summary of the main concepts covered"
}}

Guidelines:
- Create clear, concise sections that break down complex information
- Include key points that students should remember
- Use educational language appropriate for university level
- Make the notes comprehensive but digestible"""

HTML_NOTES_PROMPT = """You are an expert educational content creator. Analyze the following text from "{label}" and create comprehensive, visually appealing study notes.

Return ONLY HTML (no markdown code fences). Requirements:
1. Semantic HTML with headings (h1, h2, h3)
2. Inline styles for color coding and highlighting
3. Use color scheme: headings #1e3a8a on #fef3c7; key concepts #ea580c on #fed7aa; important points #16a34a on #dcfce7; definitions #9333ea on #f3e8ff; examples #2563eb on #dbeafe
4. Use lists where appropriate, highlight important terms with <mark>
5. Make it scannable and easy to review

Text to analyze:
{text}"""

QUIZ_PROMPT = """You are an AI assistant that creates educational quiz questions from presentation content.
Analyze the following slide content and generate multiple-choice quiz questions that test understanding of key concepts.

Content from "{label}":
{text}

Return ONLY valid JSON with this structure:
{{
  "title": "Quiz title based on the content",
  "questions": [
    {{
      "id": "unique_id",
      "question": "Clear, specific question",
      "options": ["Option A", "Option B", "Option C", "Option D"],
      "correctAnswer": 0,
      "explanation": "Explanation of why this answer is correct"
    }}
  ]
}}

Guidelines:
- Create 5-10 questions depending on content length
- Each question has exactly 4 options and ONE correct answer (0-based index in "correctAnswer")
- Make questions test understanding, not just memorization
- Ensure all options are plausible
- Provide clear explanations for correct answers"""


def normalize_quiz(data: Dict[str, Any]) -> GeneratedQuiz:
    """
    Complète un quiz renvoyé par le modèle :
    titre par défaut, questions = [] si absent, id question_<n> si manquant.
    Les questions invalides (options manquantes, index hors limites) sont écartées.
    """
    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        title = DEFAULT_QUIZ_TITLE

    raw_questions = data.get("questions")
    if not isinstance(raw_questions, list):
        raw_questions = []

    questions: List[QuizQuestion] = []
    for i, raw in enumerate(raw_questions, start=1):
        if not isinstance(raw, dict):
            logger.warning("Question %d ignorée : pas un objet", i)
            continue
        item = dict(raw)
        item["id"] = str(item.get("id") or f"question_{i}")
        try:
            questions.append(QuizQuestion.model_validate(item))
        except ValidationError as e:
            logger.warning("Question %d ignorée : %s", i, e.errors()[0].get("msg"))

    return GeneratedQuiz(title=title, questions=questions)


def normalize_notes(data: Dict[str, Any]) -> GeneratedNotes:
    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        title = DEFAULT_NOTES_TITLE

    sections: List[NoteSection] = []
    raw_sections = data.get("sections")
    for raw in raw_sections if isinstance(raw_sections, list) else []:
        try:
            sections.append(NoteSection.model_validate(raw))
        except ValidationError:
            logger.warning("Section de notes ignorée : %r", raw)

    summary = data.get("summary")
    return GeneratedNotes(
        title=title,
        sections=sections,
        summary=summary if isinstance(summary, str) else "",
    )


class GenerationClient:
    """
    Client du service génératif externe (OpenAI chat completions).
    Chaque appel est borné par GENERATION_TIMEOUT_SECONDS ; aucune relance auto.
    """

    engine = ENGINE_NAME

    def __init__(self, settings: Settings, client: Optional[Any] = None):
        self.model = settings.OPENAI_MODEL
        self.timeout = settings.GENERATION_TIMEOUT_SECONDS
        self.max_source_chars = settings.MAX_SOURCE_CHARS
        self._api_key = settings.OPENAI_API_KEY
        self._client = client

    # ---------- public API ----------

    async def generate_notes(
        self,
        text: str,
        context_label: str,
        fmt: NotesFormat = NotesFormat.structured,
    ) -> NotesResult:
        source = self._prepare(text)
        if fmt == NotesFormat.html:
            raw = await self._complete(HTML_NOTES_PROMPT.format(label=context_label, text=source))
            html = strip_code_fences(raw)
            if not html:
                raise InvalidModelResponse("Empty response from model")
            return html

        raw = await self._complete(
            STRUCTURED_NOTES_PROMPT.format(label=context_label, text=source), json_mode=True
        )
        return normalize_notes(self._parse_object(raw))

    async def generate_quiz(self, text: str, context_label: str) -> GeneratedQuiz:
        source = self._prepare(text)
        raw = await self._complete(QUIZ_PROMPT.format(label=context_label, text=source), json_mode=True)
        quiz = normalize_quiz(self._parse_object(raw))
        logger.info("Quiz généré : %d question(s)", len(quiz.questions))
        return quiz

    # ---------- internals ----------

    def _prepare(self, text: str) -> str:
        if not text or not text.strip():
            raise NoContent()
        if self._client is None and self._api_key.strip() in _PLACEHOLDER_KEYS:
            raise NotConfigured()
        return text[: self.max_source_chars]

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key, max_retries=0)
        return self._client

    async def _complete(self, prompt: str, json_mode: bool = False) -> str:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": 0.3,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        client = self._get_client()
        try:
            completion = await asyncio.wait_for(
                client.chat.completions.create(**kwargs), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.error("Génération : délai dépassé (%ss)", self.timeout)
            raise GenerationFailed(f"Generation timed out after {self.timeout:g}s") from None
        except openai.AuthenticationError as e:
            logger.error("Génération : authentification refusée (%s)", e)
            raise GenerationFailed("Authentication with the generation service failed") from e
        except openai.RateLimitError as e:
            logger.error("Génération : quota atteint (%s)", e)
            raise GenerationFailed("Generation service rate limit reached") from e
        except openai.APIConnectionError as e:
            logger.error("Génération : service injoignable (%s)", e)
            raise GenerationFailed("Could not reach the generation service") from e
        except Exception as e:
            logger.exception("Génération : erreur inattendue")
            raise GenerationFailed("Content generation failed") from e

        try:
            return completion.choices[0].message.content or ""
        except (AttributeError, IndexError) as e:
            raise InvalidModelResponse("Unexpected completion payload") from e

    def _parse_object(self, raw: str) -> Dict[str, Any]:
        result = parse_model_json(raw)
        if isinstance(result, Malformed):
            logger.warning("Réponse modèle inexploitable : %s", result.reason)
            raise InvalidModelResponse(f"Model did not return valid JSON ({result.reason})")
        if not isinstance(result.value, dict):
            raise InvalidModelResponse("Model returned JSON that is not an object")
        return result.value
