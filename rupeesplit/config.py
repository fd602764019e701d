from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    openrouter_api_key: str = ""
    telegram_bot_token: str = ""
    db_path: str = "rupee_split.json"
    llm_model: str = "google/gemini-2.0-flash-exp"

    current_user_id: str = "user-0"
    current_user_name: str = "You"
    seed_demo_data: bool = True
    # Balances at or below this are treated as settled when removing a friend
    delete_epsilon: float = 0.1


@lru_cache
def get_settings() -> Settings:
    return Settings()
