from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
    # Any OpenAI-compatible chat-completions endpoint
    openai_base_url: str = Field(default="https://api.openai.com/v1", validation_alias="OPENAI_BASE_URL")
    openai_model: str = Field(default="gpt-4o", validation_alias="OPENAI_MODEL")
    openai_timeout: float = Field(default=30.0, validation_alias="OPENAI_TIMEOUT")

    # Events recorded on behalf of this user id
    demo_user_id: int = Field(default=1, validation_alias="NOESIS_USER_ID")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
