from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class ValidatorApiConfig(BaseModel):
    url: str = None
    height_url: str = None
    info_url: str = None
    timeout: float = 32.0


class TelegramConfig(BaseModel):
    token: str = None
    base_url: str = "https://api.telegram.org"
    send_timeout: float = 12.0
    poll_timeout: int = 30


class LoopConfig(BaseModel):
    min_interval: float = 0.0
    backoff_initial: float = 1.0
    backoff_max: float = 60.0
    fetch_timeout: float = Field(60.0, gt=0)
    max_concurrent_dispatches: int = Field(16, ge=1)


class Settings(BaseSettings):
    registry_path: str = "validators.json"
    host: str = "0.0.0.0"
    port: int = 8000
    validator_api: ValidatorApiConfig = ValidatorApiConfig()
    telegram: TelegramConfig = TelegramConfig()
    loop: LoopConfig = LoopConfig()
    api_key: str | None = None  # API key for the status endpoints

    class Config:
        env_file = ".env"
        env_nested_delimiter = "__"

    def redacted(self) -> dict:
        data = self.model_dump()
        if data["telegram"]["token"]:
            data["telegram"]["token"] = "***"
        if data["api_key"]:
            data["api_key"] = "***"
        return data
