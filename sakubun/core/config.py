# sakubun/core/config.py
import os
from dataclasses import dataclass, field
from typing import Tuple

from dotenv import load_dotenv

from sakubun.core.retry import RetryPolicy

HARM_CATEGORIES: Tuple[str, ...] = (
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


@dataclass(frozen=True)
class Settings:
    """Process configuration, built once at startup and passed down explicitly."""

    GEMINI_API_KEY: str = ""
    GEMINI_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta"
    DEFAULT_MODEL: str = "gemini-2.5-flash"
    PRO_MODEL: str = "gemini-2.5-pro"
    FALLBACK_MODEL: str = "gemini-2.0-flash-lite"
    API_TIMEOUT_S: float = 30.0

    TEMPERATURE: float = 0.2
    TOP_K: int = 40
    TOP_P: float = 0.95
    SAFETY_THRESHOLD: str = "BLOCK_ONLY_HIGH"

    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_BASE_DELAY_S: float = 0.8
    RETRY_OVERLOADED_DELAY_S: float = 2.0

    PROMPT_VERSION: str = "v1.0.0"

    LANGFUSE_PUBLIC_KEY: str = ""
    LANGFUSE_SECRET_KEY: str = ""
    LANGFUSE_HOST: str = "https://cloud.langfuse.com"

    ALLOWED_ORIGINS: Tuple[str, ...] = field(default_factory=lambda: ("*",))
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    @classmethod
    def from_env(cls) -> "Settings":
        # .env 파일 로드
        load_dotenv()
        origins = os.getenv("ALLOWED_ORIGINS", "*")
        return cls(
            GEMINI_API_KEY=os.getenv("GEMINI_API_KEY", ""),
            GEMINI_API_BASE=os.getenv("GEMINI_API_BASE", cls.GEMINI_API_BASE),
            DEFAULT_MODEL=os.getenv("DEFAULT_MODEL", cls.DEFAULT_MODEL),
            PRO_MODEL=os.getenv("PRO_MODEL", cls.PRO_MODEL),
            FALLBACK_MODEL=os.getenv("FALLBACK_MODEL", cls.FALLBACK_MODEL),
            API_TIMEOUT_S=float(os.getenv("API_TIMEOUT_S", "30.0")),
            TEMPERATURE=float(os.getenv("TEMPERATURE", "0.2")),
            TOP_K=int(os.getenv("TOP_K", "40")),
            TOP_P=float(os.getenv("TOP_P", "0.95")),
            SAFETY_THRESHOLD=os.getenv("SAFETY_THRESHOLD", cls.SAFETY_THRESHOLD),
            RETRY_MAX_ATTEMPTS=int(os.getenv("RETRY_MAX_ATTEMPTS", "3")),
            RETRY_BASE_DELAY_S=float(os.getenv("RETRY_BASE_DELAY_S", "0.8")),
            RETRY_OVERLOADED_DELAY_S=float(os.getenv("RETRY_OVERLOADED_DELAY_S", "2.0")),
            PROMPT_VERSION=os.getenv("PROMPT_VERSION", cls.PROMPT_VERSION),
            LANGFUSE_PUBLIC_KEY=os.getenv("LANGFUSE_PUBLIC_KEY", ""),
            LANGFUSE_SECRET_KEY=os.getenv("LANGFUSE_SECRET_KEY", ""),
            LANGFUSE_HOST=os.getenv("LANGFUSE_HOST", cls.LANGFUSE_HOST),
            ALLOWED_ORIGINS=tuple(o.strip() for o in origins.split(",") if o.strip()) or ("*",),
            LOG_LEVEL=os.getenv("LOG_LEVEL", cls.LOG_LEVEL).upper(),
            HOST=os.getenv("HOST", cls.HOST),
            PORT=int(os.getenv("PORT", "3000")),
        )

    @property
    def langfuse_enabled(self) -> bool:
        return bool(self.LANGFUSE_PUBLIC_KEY and self.LANGFUSE_SECRET_KEY)

    def resolve_model(self, preference: str | None) -> str:
        """Map a caller's model preference onto a concrete model id."""
        pref = (preference or "").strip().lower()
        if pref in ("pro", self.PRO_MODEL.lower()):
            return self.PRO_MODEL
        return self.DEFAULT_MODEL

    def candidate_models(self, model_id: str) -> list[str]:
        models = [model_id, self.FALLBACK_MODEL]
        return list(dict.fromkeys(m for m in models if m))

    def safety_settings(self) -> list[dict[str, str]]:
        return [{"category": c, "threshold": self.SAFETY_THRESHOLD} for c in HARM_CATEGORIES]

    def generation_config(self, max_output_tokens: int) -> dict:
        return {
            "candidateCount": 1,
            "temperature": self.TEMPERATURE,
            "topK": self.TOP_K,
            "topP": self.TOP_P,
            "maxOutputTokens": max_output_tokens,
        }

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.RETRY_MAX_ATTEMPTS,
            base_delay=self.RETRY_BASE_DELAY_S,
            overloaded_delay=self.RETRY_OVERLOADED_DELAY_S,
        )
