# config.py
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    """Configuration class for the interview analysis backend"""

    # Flask
    DEBUG = _env_bool("DEBUG", "False")
    SECRET_KEY = os.getenv("SECRET_KEY", "interview-secret-key")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO")
    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

    # ----------------------------------------------------------------------
    # Database Settings
    # ----------------------------------------------------------------------
    MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    MONGO_DB = os.getenv("MONGO_DB", "interview_analysis")
    # Multi-document transactions need a replica set or sharded cluster
    MONGO_TRANSACTIONS = _env_bool("MONGO_TRANSACTIONS", "True")

    # ----------------------------------------------------------------------
    # Auth
    # ----------------------------------------------------------------------
    JWT_SECRET = os.getenv("JWT_SECRET", SECRET_KEY)
    JWT_EXPIRES_HOURS = int(os.getenv("JWT_EXPIRES_HOURS", "24"))
    KAKAO_USER_URL = os.getenv("KAKAO_USER_URL", "https://kapi.kakao.com/v2/user/me")
    KAKAO_TIMEOUT = int(os.getenv("KAKAO_TIMEOUT", "10"))

    # ----------------------------------------------------------------------
    # Session pipeline
    # ----------------------------------------------------------------------
    EXPECTED_SAMPLES = int(os.getenv("EXPECTED_SAMPLES", "6"))   # 2 per question
    STRICT_SAMPLE_COUNT = _env_bool("STRICT_SAMPLE_COUNT", "False")
    MEAN_SCORE_TOLERANCE = float(os.getenv("MEAN_SCORE_TOLERANCE", "0.1"))
    RESULTS_CACHE_SECONDS = int(os.getenv("RESULTS_CACHE_SECONDS", "300"))
