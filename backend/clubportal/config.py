import os

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env at repo root
load_dotenv(dotenv_path=os.path.join(os.path.dirname(os.path.dirname(__file__)), "..", ".env"))

GENAI_PLACEHOLDER_KEY = "your_google_ai_api_key_here"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    database_url: str = "sqlite:///./clubs.db"
    cors_origin: str = "http://localhost:3000"
    app_base_url: str = "http://localhost:3000"
    events_csv_url: str = ""
    announcements_csv_url: str = ""
    sheet_timeout_seconds: float = 10.0
    genai_api_key: str = Field(default="", validation_alias="GOOGLE_GENAI_API_KEY")
    genai_model: str = "gemini-1.5-flash"
    seed_demo_data: bool = True
    log_level: str = "INFO"

    @field_validator("app_base_url")
    @classmethod
    def _strip_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()

    @property
    def ai_configured(self) -> bool:
        return bool(self.genai_api_key) and self.genai_api_key != GENAI_PLACEHOLDER_KEY


settings = Settings()
