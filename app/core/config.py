from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()


class Settings(BaseSettings):
    POSTGRES_DSN: str | None = None
    ENVIRONMENT: str = "local"
    LOG_LEVEL: str = "INFO"

    # Companion lookups prefer samples within this many hours of the target date
    MATCH_WINDOW_HOURS: float = 24.0

    # Mifflin-St Jeor needs age and sex; the tracker only records weight/height
    BMR_REFERENCE_AGE: int = 30
    BMR_REFERENCE_SEX: str = "male"


settings = Settings()
