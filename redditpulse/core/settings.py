from pydantic_settings import BaseSettings
from pydantic import SecretStr


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./redditpulse.db"
    database_url_sync: str = "sqlite:///./redditpulse.db"

    env: str = "dev"
    log_level: str = "INFO"

    # Feed
    subreddit: str = "copilotstudio"
    scrape_hours: int = 168
    scrape_target: int = 100
    scrape_max_pages: int = 10
    feed_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    # LLM (OpenAI-compatible endpoint, Groq by default)
    llm_api_key: SecretStr | None = None
    llm_base_url: str = "https://api.groq.com/openai/v1"
    llm_model: str = "llama-3.3-70b-versatile"
    llm_temperature: float = 0.3
    llm_max_tokens: int = 500
    llm_request_delay_seconds: float = 2.0

    # Classification
    min_confidence: float = 0.25
    catch_all_category: str = "General"
    classify_product_areas: bool = True

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def llm_enabled(self) -> bool:
        return self.llm_api_key is not None and bool(self.llm_api_key.get_secret_value())


settings = Settings()
