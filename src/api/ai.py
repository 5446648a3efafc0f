"""AI writing assistant routes used by the proposal editor."""

import logging
from typing import Dict, Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from src.api.deps import get_llm
from src.core.llm import LLMClient, LLMError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai"])

EDIT_SYSTEM_PROMPT = """You are a professional text editor assistant. Edit the provided text according to the user's instructions.

Guidelines:
- Maintain the original meaning and context
- Preserve any markdown formatting (**, *, bullet points, etc.)
- Keep the tone professional and appropriate for business documents
- If the text appears to be part of a larger document, maintain consistency
- Only make the requested changes, don't add unnecessary content
- Return only the edited text, no explanations or meta-commentary

User's request: {prompt}

Text to edit:"""

GENERATE_SYSTEM_PROMPT = """You are a professional content writer specializing in business proposals and technical documents. Generate high-quality content based on the user's request.

Guidelines:
- Use professional, clear, and engaging language
- Structure content with appropriate headings and formatting
- Include relevant details and examples when appropriate
- Maintain consistency with business document standards
- Use markdown formatting for structure (**, *, bullet points, etc.)
- Keep content focused and relevant to the request

Content type: {content_type}"""


class EditTextRequest(BaseModel):
    """Body for POST /api/ai/edit-text. `selectedText` wins over `text`."""
    model_config = ConfigDict(populate_by_name=True)

    text: Optional[str] = None
    selected_text: Optional[str] = Field(None, alias="selectedText")
    prompt: Optional[str] = None


class GenerateContentRequest(BaseModel):
    """Body for POST /api/ai/generate-content."""
    model_config = ConfigDict(populate_by_name=True)

    prompt: Optional[str] = None
    context: Optional[str] = None
    content_type: str = Field("general", alias="contentType")


def _require_model(llm: LLMClient) -> None:
    if not llm.is_available():
        raise HTTPException(status_code=500, detail="OpenAI API key not configured")


@router.post("/edit-text", summary="Rewrite text following an instruction")
async def edit_text(body: EditTextRequest, llm: LLMClient = Depends(get_llm)) -> Dict[str, Any]:
    _require_model(llm)

    if not body.text and not body.selected_text:
        raise HTTPException(status_code=400, detail="Either text or selectedText must be provided")
    if not body.prompt or not body.prompt.strip():
        raise HTTPException(status_code=400, detail="Prompt is required")

    original = body.selected_text or body.text
    try:
        edited = await llm.complete(
            original,
            system=EDIT_SYSTEM_PROMPT.format(prompt=body.prompt),
            temperature=0.3,
            max_tokens=2000,
        )
    except LLMError as e:
        logger.error(f"AI text editing error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to process text with AI: {str(e)}")

    logger.info(f"AI edit: {len(original)} -> {len(edited)} chars")
    return {
        "success": True,
        "edited_text": edited,
        "original_text": original,
        "prompt": body.prompt,
    }


@router.post("/generate-content", summary="Draft new content from a prompt")
async def generate_content(body: GenerateContentRequest, llm: LLMClient = Depends(get_llm)) -> Dict[str, Any]:
    _require_model(llm)

    if not body.prompt or not body.prompt.strip():
        raise HTTPException(status_code=400, detail="Prompt is required")

    system = GENERATE_SYSTEM_PROMPT.format(content_type=body.content_type)
    if body.context:
        system += f"\n\nContext: {body.context}"

    try:
        content = await llm.complete(body.prompt, system=system, temperature=0.4, max_tokens=2000)
    except LLMError as e:
        logger.error(f"AI content generation error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to generate content with AI: {str(e)}")

    return {
        "success": True,
        "content": content,
        "prompt": body.prompt,
        "content_type": body.content_type,
    }
