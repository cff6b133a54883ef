# Configuration settings for the application, such as database settings, environment variables, etc.
import os
import logging
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


# SQLite by default so a fresh checkout runs without a database server
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./scripture_path.db")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# OpenAI API configuration
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
if not OPENAI_API_KEY:
    logger.warning("OPENAI_API_KEY is not set. Study generation and regeneration will not work.")

# Seeker tier uses the lighter model, Scribe tier the deeper one
SEEKER_MODEL = os.getenv("SEEKER_MODEL", "gpt-4o-mini")
SCRIBE_MODEL = os.getenv("SCRIBE_MODEL", "gpt-4o")
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.4"))

# Verse text lookup (popover content)
BIBLE_API_URL = os.getenv("BIBLE_API_URL", "https://bible-api.com")
BIBLE_TRANSLATION = os.getenv("BIBLE_TRANSLATION", "kjv")
BIBLE_API_TIMEOUT = float(os.getenv("BIBLE_API_TIMEOUT", "10"))
BIBLE_GATEWAY_URL = os.getenv("BIBLE_GATEWAY_URL", "https://www.biblegateway.com/passage/")

# Wrap references the model forgot to tag
AUTO_LINK_REFERENCES = _env_flag("AUTO_LINK_REFERENCES", True)

# Owner id given to studies created before sign-in
GUEST_OWNER_ID = os.getenv("GUEST_OWNER_ID", "guest_temporary")

DEFAULT_STUDY_IMAGE_URL = os.getenv(
    "DEFAULT_STUDY_IMAGE_URL",
    "https://images.unsplash.com/photo-1504052434569-70ad5836ab65?auto=format&fit=crop&q=80&w=800",
)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,*").split(",") if o.strip()]
