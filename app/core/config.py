import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    # API Keys
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    GOOGLE_AI_API_KEY: str = os.getenv("GOOGLE_AI_API_KEY", "")

    # Provider Configuration
    AI_PROVIDER_ORDER: str = os.getenv("AI_PROVIDER_ORDER", "openai,google,ollama")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    GOOGLE_MODEL: str = os.getenv("GOOGLE_MODEL", "gemini-2.0-flash")
    GOOGLE_API_BASE: str = os.getenv("GOOGLE_API_BASE", "https://generativelanguage.googleapis.com/v1beta")
    OLLAMA_BASE_URL: str = os.getenv("OLLAMA_BASE_URL", "")
    OLLAMA_MODEL: str = os.getenv("OLLAMA_MODEL", "gemma2:2b")
    LLM_TEMPERATURE: float = float(os.getenv("LLM_TEMPERATURE", "0.7"))
    PROVIDER_TIMEOUT_SECONDS: float = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "15"))

    # Answers at or below this many characters count as a failed provider call
    MIN_ANSWER_LENGTH: int = int(os.getenv("MIN_ANSWER_LENGTH", "50"))

    # Streaming Configuration
    STREAM_CHUNK_SIZE: int = int(os.getenv("STREAM_CHUNK_SIZE", "3"))
    CHUNK_DELAY_SECONDS: float = float(os.getenv("CHUNK_DELAY_SECONDS", "0.015"))
    THINKING_DELAY_SECONDS: float = float(os.getenv("THINKING_DELAY_SECONDS", "0.4"))

    # Web Search Configuration
    WEB_SEARCH_URL: str = os.getenv("WEB_SEARCH_URL", "https://api.duckduckgo.com/")
    WEB_SEARCH_TIMEOUT_SECONDS: float = float(os.getenv("WEB_SEARCH_TIMEOUT_SECONDS", "5"))

    # MongoDB Configuration (learning profiles)
    MONGODB_CONNECTION_STRING: str = os.getenv("MONGODB_CONNECTION_STRING", "")
    MONGODB_DATABASE: str = "courseconnect"
    MONGODB_PROFILE_COLLECTION: str = "userLearningProfiles"

    # Context Configuration
    HISTORY_TURNS: int = int(os.getenv("HISTORY_TURNS", "10"))

    # API Configuration
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @property
    def provider_order(self):
        return [name.strip().lower() for name in self.AI_PROVIDER_ORDER.split(",") if name.strip()]


# Create a global settings object
settings = Settings()
