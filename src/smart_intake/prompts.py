"""System prompts for the intake model.

Built-in prompts can be overridden per key by ``<prompts_dir>/<key>.md``.
"""

import logging
from datetime import date, datetime
from pathlib import Path

import aiofiles

from .attachments import OriginalInput, normalize_text

logger = logging.getLogger(__name__)

MAIN_PROMPT = "smart_input_main"
IMAGE_PROMPT = "smart_input_image"
VOICE_PROMPT = "smart_input_voice"

_RESPONSE_FORMAT = """
Respond with a single JSON object and nothing else:
{
  "status": "READY" | "NEEDS_CLARIFICATION" | "SUGGEST_ALTERNATIVE",
  "intentType": "task" | "epic" | "challenge" | "event" | "bill" | "note",
  "confidence": 0.0-1.0,
  "reasoning": "short explanation",
  "draft": { fields of the chosen type, camelCase },
  "clarificationFlow": {
    "title": "...", "description": "...",
    "questions": [{"id": "...", "question": "...", "type": "single_choice|multi_choice|yes_no|free_text|number|date|time",
                   "options": [{"value": "...", "label": "..."}], "fieldToPopulate": "...", "required": true}]
  },
  "originalIntent": "type the user asked for, when suggesting an alternative",
  "alternativeReason": "why the alternative fits better",
  "suggestions": ["..."]
}
Ask at most {budget} questions. Today is {today}.
"""

BUILTIN_PROMPTS: dict[str, str] = {
    MAIN_PROMPT: (
        "You turn a user's quick input into one structured item for a personal "
        "productivity app: a task, epic, challenge, event, bill or note. Life areas: "
        "health, career, finance, growth, relationships, social, fun, environment. "
        "Quadrants: q1 urgent+important, q2 important, q3 urgent, q4 neither. "
        "Only ask questions for information you cannot reasonably infer."
        + _RESPONSE_FORMAT
    ),
    IMAGE_PROMPT: (
        "The user sent an image (its extracted text is included). Decide what it "
        "shows (receipt, bill, flyer, handwritten list, screenshot) and turn it into "
        "one structured item. Include an \"imageAnalysis\" object with detectedType, "
        "extractedText, extractedData and confidence."
        + _RESPONSE_FORMAT
    ),
    VOICE_PROMPT: (
        "The user spoke this input; the transcript may contain filler words and "
        "recognition errors. Interpret the intent generously and turn it into one "
        "structured item."
        + _RESPONSE_FORMAT
    ),
}


class PromptLibrary:
    """Resolves the system prompt for an input."""

    def __init__(self, prompts_dir: str | None = None, question_budget: int = 5):
        self.prompts_dir = Path(prompts_dir) if prompts_dir else None
        self.question_budget = question_budget
        self._cache: dict[str, str] = {}

    @staticmethod
    def key_for(original_input: OriginalInput) -> str:
        if original_input.has_image:
            return IMAGE_PROMPT
        if original_input.has_voice:
            return VOICE_PROMPT
        return MAIN_PROMPT

    async def _template(self, key: str) -> str:
        if key in self._cache:
            return self._cache[key]

        template = BUILTIN_PROMPTS[key]
        if self.prompts_dir:
            path = self.prompts_dir / f"{key}.md"
            if path.exists():
                try:
                    async with aiofiles.open(path, "r") as f:
                        template = await f.read()
                except OSError as e:
                    logger.warning(f"Could not read prompt override {path}: {e}")

        self._cache[key] = template
        return template

    async def system_prompt(self, original_input: OriginalInput, today: date | None = None) -> str:
        """Get the system prompt for an input with placeholders filled in."""
        template = await self._template(self.key_for(original_input))
        today = today or date.today()
        return template.replace("{today}", today.isoformat()).replace(
            "{budget}", str(self.question_budget)
        )


def build_user_prompt(user_id: str, original_input: OriginalInput, now: datetime, timezone: str = "UTC") -> str:
    """Render the user side of the model conversation."""
    lines = [
        f"User: {user_id}",
        f"Current time: {now.isoformat()} ({timezone})",
    ]
    if original_input.text:
        lines.append(f"Input: {normalize_text(original_input.text)}")
    if original_input.voice_transcript:
        lines.append(f"Voice transcript: {normalize_text(original_input.voice_transcript)}")
    for attachment in original_input.attachments:
        lines.append(f"Attachment: {attachment.name} ({attachment.kind}, {attachment.mime_type}, {attachment.size} bytes)")
        if attachment.extracted_text:
            lines.append(f"Extracted text: {attachment.extracted_text}")
    return "\n".join(lines)
