from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "nearandnow"
    POSTGRES_USER: str = "nearandnow"
    POSTGRES_PASSWORD: str = "nearandnow"
    # Full SQLAlchemy URL; takes precedence over the POSTGRES_* parts
    DATABASE_URL: Optional[str] = None

    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Checkout policy
    DELIVERY_RADIUS_KM: float = 50.0
    ORDER_CODE_BRAND: str = "NN"
    # Max ids per IN (...) filter when querying inventory
    IN_FILTER_CHUNK_SIZE: int = 100

    # Nominatim-compatible search endpoint
    GEOCODER_URL: str = "https://nominatim.openstreetmap.org/search"
    GEOCODER_TIMEOUT: float = 5.0
    GEOCODER_USER_AGENT: str = "nearandnow-orders/1.0"

    class Config:
        env_file = ".env"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

@lru_cache
def get_settings() -> Settings:
    return Settings()
