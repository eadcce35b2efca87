"""Configuration for the chapter script pipeline."""

from config import get_env, get_env_float


class Settings:
    """Pipeline settings."""

    # Segment band (characters)
    SEGMENT_MIN_CHARS = 50
    SEGMENT_TARGET_CHARS = 55
    SEGMENT_MAX_CHARS = 60
    SEGMENT_OVERFLOW_CHARS = 10  # slack allowed when redistributing leftovers
    MIN_SCENE_COUNT = 5

    # Narration unit band (characters)
    NARRATION_MIN_CHARS = 20
    NARRATION_MAX_CHARS = 22
    NARRATION_FALLBACK_CHARS = 21
    NARRATION_WINDOW = 2  # punctuation search radius around the target cut

    # Gemini settings
    GEMINI_MODEL = get_env("SCRIPT_GEMINI_MODEL", default="gemini-2.0-flash")
    GENERATION_TIMEOUT = get_env_float("SCRIPT_GENERATION_TIMEOUT", 120.0)  # seconds
    SINGLE_NARRATION_TIMEOUT = get_env_float("SCRIPT_NARRATION_TIMEOUT", 30.0)  # seconds

    # Credit gate
    CREDIT_FEATURE_KEY = "script_creation"

    # Script document assembly
    SCENE_SEPARATOR = "\n\n"


# Global settings instance
settings = Settings()
