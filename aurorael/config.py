import os
from typing import Final, List


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _list_env(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


DEFAULT_ALLOWED_ORIGINS = [
    "https://aurorael.vercel.app",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

DEFAULT_AUTHOR_KEYWORDS = [
    "quien te creo",
    "quien te hizo",
    "quien te programo",
    "quien es tu creador",
    "tu creador",
    "tu autor",
    "who made you",
    "who created you",
    "who built you",
    "who is your creator",
    "your author",
]

DEFAULT_AUTHOR_MESSAGE = (
    "AURORAEL fue creada por **Adrian Corro** en un proyecto filosófico-crítico. "
    "Si deseas ver su origen metafísico, te muestro un video."
)


class _Config:
    def __init__(self) -> None:
        # Language model
        self.gemini_api_key: str | None = os.getenv("GEMINI_API_KEY")
        self.model_primary: str = os.getenv("MODEL_PRIMARY", "gemini-2.5-flash")
        self.model_fallback: str = os.getenv("MODEL_FALLBACK", "gemini-2.5-flash-lite")
        self.model_timeout_sec: float = _float_env("MODEL_TIMEOUT_SEC", 30.0)
        self.model_transient_retries: int = _int_env("MODEL_TRANSIENT_RETRIES", 2)
        self.model_backoff_base_sec: float = _float_env("MODEL_BACKOFF_BASE_SEC", 0.3)
        self.model_temperature: float = _float_env("MODEL_TEMPERATURE", 0.8)
        self.model_max_output_tokens: int = _int_env("MODEL_MAX_OUTPUT_TOKENS", 800)

        # Weather provider
        self.openweather_api_key: str | None = os.getenv("OPENWEATHER_API_KEY")
        self.openweather_base: str = os.getenv(
            "OPENWEATHER_BASE", "https://api.openweathermap.org/data/2.5"
        )
        self.openweather_geo_base: str = os.getenv(
            "OPENWEATHER_GEO_BASE", "https://api.openweathermap.org/geo/1.0"
        )
        self.http_timeout_sec: float = _float_env("HTTP_TIMEOUT_SEC", 10.0)
        self.user_agent: str = os.getenv("USER_AGENT", "Aurorael-Backend")

        # Sessions and outbound context
        self.session_ttl_sec: float = _float_env("SESSION_TTL_SEC", 72 * 60 * 60)
        self.max_history: int = _int_env("MAX_HISTORY", 50)
        self.max_chars_user: int = _int_env("MAX_CHARS_USER", 9000)
        self.max_chars_assistant: int = _int_env("MAX_CHARS_ASSISTANT", 9000)
        self.prompt_max_chars: int = _int_env("PROMPT_MAX_CHARS", 1600)

        # Admission control / limits
        self.max_in_flight: int = _int_env("MAX_IN_FLIGHT", 6)
        self.retry_after_default_sec: int = _int_env("RETRY_AFTER_DEFAULT_SEC", 30)
        self.rate_limit: str = os.getenv("RATE_LIMIT", "30/minute")
        self.allowed_origins: List[str] = _list_env("ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS)

        # Author identity short-circuit
        self.author_keywords: List[str] = _list_env("AUTHOR_KEYWORDS", DEFAULT_AUTHOR_KEYWORDS)
        self.author_message: str = os.getenv("AUTHOR_MESSAGE", DEFAULT_AUTHOR_MESSAGE)
        self.author_video_id: str = os.getenv("AUTHOR_VIDEO_ID", "jOSO3AAIUzM")


CONFIG: Final[_Config] = _Config()
