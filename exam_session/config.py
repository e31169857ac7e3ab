"""Engine settings. Values come from the environment (.env honoured), with explicit defaults."""
import os

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")
STORE_BACKEND = os.getenv("STORE_BACKEND", "supabase")

# Attempt composition
QUESTIONS_PER_ATTEMPT = _int_env("QUESTIONS_PER_ATTEMPT", 10)
_seed = os.getenv("QUESTION_SAMPLE_SEED")
QUESTION_SAMPLE_SEED = int(_seed) if _seed else None  # None = unseeded sampling

# Timing
DEFAULT_DURATION_MINUTES = _int_env("DEFAULT_DURATION_MINUTES", 30)
TICK_INTERVAL_SECONDS = _float_env("TICK_INTERVAL_SECONDS", 1.0)
LOW_TIME_WARNING_SECONDS = _int_env("LOW_TIME_WARNING_SECONDS", 300)

# Grading fallback when an exam row has no passing_score
DEFAULT_PASSING_SCORE = _int_env("DEFAULT_PASSING_SCORE", 70)

# Store calls
STORE_TIMEOUT_SECONDS = _int_env("STORE_TIMEOUT_SECONDS", 10)
READ_RETRIES = _int_env("READ_RETRIES", 1)
