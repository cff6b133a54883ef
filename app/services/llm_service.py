import logging
from typing import List, Optional

from langchain_core.messages import BaseMessage
from langchain_openai import ChatOpenAI

from app.config import LLM_TEMPERATURE, OPENAI_API_KEY, SCRIBE_MODEL, SEEKER_MODEL
from app.models.enums import UserTier

logger = logging.getLogger(__name__)


class LLMServiceError(Exception):
    """The language model could not be reached or returned nothing."""


def model_for_tier(tier: UserTier) -> str:
    """Scribe users get the deeper model, everyone else the lighter one."""
    return SCRIBE_MODEL if UserTier(tier) == UserTier.scribe else SEEKER_MODEL


def generate_text(messages: List[BaseMessage], model: Optional[str] = None) -> str:
    """
    Send chat messages to the model and return the raw response text.

    Args:
        messages: Prompt messages, usually from a ChatPromptTemplate
        model: Model name; defaults to the Seeker model

    Returns:
        The response content as a string
    """
    if not OPENAI_API_KEY:
        raise LLMServiceError("OPENAI_API_KEY environment variable is not set")

    llm = ChatOpenAI(
        model=model or SEEKER_MODEL,
        temperature=LLM_TEMPERATURE,
        api_key=OPENAI_API_KEY,
    )

    try:
        response = llm.invoke(messages)
    except Exception as e:
        logger.error("Error calling %s: %s", model or SEEKER_MODEL, e)
        raise LLMServiceError(f"Language model request failed: {e}") from e

    content = response.content if isinstance(response.content, str) else ""
    if not content.strip():
        raise LLMServiceError("Language model returned an empty response")
    return content
