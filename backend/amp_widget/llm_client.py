import re
import json
from typing import Dict, Any, List
from openai import OpenAI
from .settings import settings
from .schemas import GenerateCopyRequest, GenerateCopyResponse
from .errors import CopyGenerationError
from .logger import logger

MAX_HEADLINE_CHARS = 60
MAX_SUBHEADLINE_CHARS = 100
MAX_CTA_CHARS = 30


def describe_fields(request: GenerateCopyRequest) -> str:
    """One line per field, the way the model sees the available data."""
    lines = []
    for field in request.fields:
        line = f"- {{{{{field.name}}}}}"
        if field.description:
            line += f": {field.description}"
        if field.sample_value:
            line += f" (e.g. \"{field.sample_value}\")"
        lines.append(line)
    return "\n".join(lines)


def build_copy_prompt(request: GenerateCopyRequest) -> str:
    return (
        "Generate copy for a website personalization widget.\n"
        f"Brand: {request.brand_name or 'the brand'}\n"
        f"Goal: {request.goal}\n"
        f"Tone: {request.tone or 'friendly and professional'}\n\n"
        "Personalization fields available:\n"
        f"{describe_fields(request)}\n\n"
        f"Return 3 headlines (max {MAX_HEADLINE_CHARS} chars), "
        f"2 subheadlines (max {MAX_SUBHEADLINE_CHARS} chars) and 2 call-to-action labels. "
        "Use {{field_name}} placeholders for dynamic values. The copy must read "
        "correctly for any field value. "
        "Respond with JSON only, with keys: headlines, subheadlines, cta_suggestions."
    )


def generate_copy_with_openai(request: GenerateCopyRequest) -> GenerateCopyResponse:
    """
    Ask the LLM for headline, subheadline and CTA suggestions.
    Raises CopyGenerationError when no usable answer comes back.
    """
    logger.info('Copy generation started.')
    if not settings.openai_api_key:
        logger.warning(
            "OpenAI API key not found. Please set OPENAI_API_KEY in your environment variables.")
        raise CopyGenerationError("OpenAI API key is not configured")

    client = OpenAI(api_key=settings.openai_api_key)

    system = (
        "You are a marketing copywriter specializing in website personalization. "
        "Write concise, positive, action-oriented copy. "
        "Never invent personal data; only reference the placeholders you are given."
    )

    try:
        resp = client.chat.completions.create(
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": build_copy_prompt(request)},
            ],
        )
        text = (resp.choices[0].message.content or "").strip()
        logger.debug(f"Raw LLM response text: {text}")
    except Exception as e:
        logger.error(f"LLM copy generation failed with exception: {e}")
        raise CopyGenerationError("Copy generation failed") from e

    # Extract JSON from response
    block = re.search(r"\{.*\}", text, flags=re.S)
    if not block:
        raise CopyGenerationError("LLM response contained no JSON object")
    try:
        data = json.loads(block.group(0))
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse LLM response as JSON. Error={e}")
        raise CopyGenerationError("LLM response was not valid JSON") from e

    return _process_data(data)


def _clean(values: Any, limit: int) -> List[str]:
    if not isinstance(values, list):
        return []
    cleaned = []
    for value in values:
        if not isinstance(value, str):
            continue
        value = value.strip().strip('"\'')
        if not value:
            continue
        if len(value) > limit:
            value = value[:limit - 3] + "..."
        cleaned.append(value)
    return cleaned


def _process_data(data: Dict[str, Any]) -> GenerateCopyResponse:
    """
    Validate and trim the LLM's suggestions.
    Args:
        data: Parsed JSON object from the model
    Returns:
        GenerateCopyResponse with length-limited entries
    """
    return GenerateCopyResponse(
        headlines=_clean(data.get("headlines"), MAX_HEADLINE_CHARS),
        subheadlines=_clean(data.get("subheadlines"), MAX_SUBHEADLINE_CHARS),
        cta_suggestions=_clean(data.get("cta_suggestions"), MAX_CTA_CHARS),
    )
