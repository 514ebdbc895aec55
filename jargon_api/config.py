import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class ModelPricing:
    """USD price per 1K tokens for one completion model."""
    input_per_1k: float
    output_per_1k: float


# Keyed by model id; every model the rewrite service may call needs an entry
MODEL_PRICING: Dict[str, ModelPricing] = {
    "gpt-3.5-turbo": ModelPricing(input_per_1k=0.0015, output_per_1k=0.002),
}

DEFAULT_MODEL = "gpt-3.5-turbo"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: str
    db_pool_size: int = 5
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800
    db_create_tables: bool = True
    openai_api_key: Optional[str] = None
    openai_model: str = DEFAULT_MODEL
    openai_timeout: float = 30.0
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    environment: str = "production"

    @property
    def sql_echo(self) -> bool:
        return self.environment == "development"


def build_database_url() -> str:
    """Return DATABASE_URL, or assemble a PostgreSQL (asyncpg) URL from the DB_* parts."""
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    user = os.getenv("DB_USER", "postgres")
    password = os.getenv("DB_PASSWORD", "")
    host = os.getenv("DB_HOST", "localhost")
    port = os.getenv("DB_PORT", "5432")
    name = os.getenv("DB_NAME", "ask_ayo")
    auth = f"{user}:{password}" if password else user
    return f"postgresql+asyncpg://{auth}@{host}:{port}/{name}"


def load_settings() -> Settings:
    """Collect settings from the environment (and .env, loaded at import)."""
    origins = os.getenv("ALLOWED_ORIGINS", "*")
    return Settings(
        database_url=build_database_url(),
        db_pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
        db_pool_timeout=int(os.getenv("DB_POOL_TIMEOUT", "30")),
        db_pool_recycle=int(os.getenv("DB_POOL_RECYCLE", "1800")),
        db_create_tables=_env_bool("DB_CREATE_TABLES", "true"),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        openai_model=os.getenv("OPENAI_MODEL", DEFAULT_MODEL),
        openai_timeout=float(os.getenv("OPENAI_TIMEOUT", "30")),
        allowed_origins=[o.strip() for o in origins.split(",") if o.strip()],
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        environment=os.getenv("ENVIRONMENT", "production").lower(),
    )


def get_pricing(model: str) -> ModelPricing:
    """Look up pricing for a model id; unknown models are a configuration error."""
    try:
        return MODEL_PRICING[model]
    except KeyError:
        raise ValueError(
            f"No pricing configured for model '{model}'. Known models: {', '.join(sorted(MODEL_PRICING))}"
        )
