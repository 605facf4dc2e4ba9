from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str
    JWT_SECRET: str
    JWT_ALGO: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    DEFAULT_CURRENCY: str = "USD"
    DEFAULT_LANGUAGE: str = "en"

    # Splitwise puts non-group expenses in a pseudo group with this id
    SPLITWISE_NO_GROUP_ID: int = 0

    LOG_LEVEL: str = "INFO"
    SQL_ECHO: bool = False
    DB_CONNECT_RETRIES: int = 5

    class Config:
        env_file = ".env"

settings = Settings()
