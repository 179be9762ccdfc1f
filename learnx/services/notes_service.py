"""AI study notes generation through the Gemini API."""

import logging
import re

from google.genai import errors as genai_errors
from google.genai import types

from learnx.errors import ConfigurationError, GatewayError, ValidationError
from learnx.services import prompt_registry

logger = logging.getLogger('learnx.notes')

IMAGE_PLACEHOLDER_RE = re.compile(r'\[\[IMAGE:\s*(.*?)\]\]')
MAX_TOPIC_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000
MAX_OUTPUT_TOKENS = 32768


def parse_notes_request(payload):
    if not isinstance(payload, dict):
        raise ValidationError('Invalid payload')
    topic = str(payload.get('topic', '') or '').strip()
    language = str(payload.get('language', '') or '').strip().capitalize()
    description = str(payload.get('description', '') or '').strip()
    if not topic:
        raise ValidationError('Topic is required')
    if len(topic) > MAX_TOPIC_LENGTH:
        raise ValidationError(f"Topic must be at most {MAX_TOPIC_LENGTH} characters")
    if language not in prompt_registry.NOTES_LANGUAGES:
        raise ValidationError('Language must be Hindi or English')
    return topic, language, description[:MAX_DESCRIPTION_LENGTH]


def extract_image_prompts(notes_markdown):
    return [match.strip() for match in IMAGE_PLACEHOLDER_RE.findall(notes_markdown or '') if match.strip()]


def generate_notes(ctx, topic, language, description=''):
    client = ctx.notes_client
    if client is None:
        raise ConfigurationError('AI notes generation is not configured.')
    prompt_text = prompt_registry.build_notes_prompt(topic, language, description)
    try:
        response = client.models.generate_content(
            model=ctx.config.notes_model,
            contents=[types.Content(role='user', parts=[types.Part.from_text(text=prompt_text)])],
            config=types.GenerateContentConfig(max_output_tokens=MAX_OUTPUT_TOKENS),
        )
    except genai_errors.APIError as e:
        logger.error(f"Notes generation failed for topic '{topic}': {e}")
        raise GatewayError('Could not generate notes. Please try again.', status_code=502) from e

    notes = str(getattr(response, 'text', '') or '').strip()
    if not notes:
        raise GatewayError('Notes generation returned no content.', status_code=502)
    return {
        'topic': topic,
        'language': language,
        'notes': notes,
        'imagePrompts': extract_image_prompts(notes),
    }
