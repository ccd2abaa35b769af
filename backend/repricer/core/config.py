# 环境变量和配置
# pydantic-settings reads .env = core/config.py

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# When uvicorn/celery runs outside Docker the model_config.env_file=".env"
# below is what picks up backend/.env

class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_prefix="",
        case_sensitive=False,
    )

    # ========= project config =========
    PROJECT_NAME: str = "Repricing Hub"
    ENVIRONMENT: str = "dev"
    API_PREFIX: str = "/api/v1"
    BACKEND_CORS_ORIGINS: str = "http://localhost:5173"


    # ========= Database =========
    # - inside docker the "db" service from docker-compose.yml
    # - local tools (psql/scripts) can use DATABASE_URL_LOCAL
    DATABASE_URL: str = Field(
        default="postgresql+psycopg://rp_user:rp_pass@db:5432/repricing_dev",
        alias="DATABASE_URL"
    )
    DATABASE_URL_LOCAL: Optional[str] = Field(
        default=None,
        alias="DATABASE_URL_LOCAL",
        description="Optional local URL for tools (e.g., psql). Typically '...@localhost:5432/repricing_dev'"
    )


    # ========= celery config =========
    CELERY_BROKER_URL: Optional[str] = None
    CELERY_RESULT_BACKEND: Optional[str] = None
    CELERY_TIMEZONE: str = "Europe/London"
    DELIVERY_TASKS_INLINE: bool = Field(default=True, alias="DELIVERY_TASKS_INLINE")   # True = run in the request, False = enqueue


    # ========= delivery cost attribution =========
    # suite / heavy items: fixed per-unit delivery cost (same currency as prices)
    DELIVERY_OVERRIDE_COST: float = Field(45.0, ge=0, alias="DELIVERY_OVERRIDE_COST")
    DELIVERY_HEAVY_WEIGHT_KG: float = Field(30.0, ge=0, alias="DELIVERY_HEAVY_WEIGHT_KG")
    DELIVERY_OVERRIDE_TITLE_KEYWORD: str = Field("suite", alias="DELIVERY_OVERRIDE_TITLE_KEYWORD")

    # writes are skipped when |new - current| <= tolerance
    DELIVERY_CHANGE_TOLERANCE: float = Field(0.01, ge=0, alias="DELIVERY_CHANGE_TOLERANCE")
    DELIVERY_WRITE_BATCH_SIZE: int = Field(25, ge=1, le=25, alias="DELIVERY_WRITE_BATCH_SIZE")

    # report sizes
    DELIVERY_REPORT_SAMPLE_LIMIT: int = Field(50, ge=0, le=100, alias="DELIVERY_REPORT_SAMPLE_LIMIT")
    DELIVERY_CATEGORY_SUMMARY_LIMIT: int = Field(20, ge=0, alias="DELIVERY_CATEGORY_SUMMARY_LIMIT")

    # manifest matching: "12320364167549-REM" -> base "12320364167549"
    DELIVERY_ORDER_NO_SEPARATOR: str = Field("-", min_length=1, alias="DELIVERY_ORDER_NO_SEPARATOR")
    DELIVERY_AMBIGUOUS_MATCH_POLICY: str = Field(
        "reject",
        pattern="^(reject|earliest)$",
        alias="DELIVERY_AMBIGUOUS_MATCH_POLICY",
        description="What to do when a manifest base number matches several split orders: reject | earliest",
    )


settings = Settings()  # 只从环境读取（含 .env）
