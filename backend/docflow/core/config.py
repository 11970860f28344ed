"""
Pydantic Settings — centralized configuration loaded from environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Database ──────────────────────────────
    POSTGRES_USER: str = "docflow_user"
    POSTGRES_PASSWORD: str = "docflow_pass"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "docflow_db"

    @property
    def DATABASE_URL(self) -> str:
        """Async URL for app runtime (asyncpg)."""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # ── Redis / Celery ────────────────────────
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"

    # ── File Storage ──────────────────────────
    STORAGE_ROOT: str = "./storage"

    # ── Hugging Face Inference ────────────────
    AI_ENABLED: bool = True
    HF_API_TOKEN: str = ""
    HF_INFERENCE_URL: str = "https://api-inference.huggingface.co/models"
    HF_ZERO_SHOT_MODEL: str = "facebook/bart-large-mnli"
    HF_NER_MODEL: str = "dslim/bert-base-NER"
    HF_OCR_MODEL: str = "microsoft/trocr-base-printed"
    INFERENCE_TIMEOUT_SECONDS: float = 30.0
    OCR_TIMEOUT_SECONDS: float = 30.0

    # ── Text Extraction ───────────────────────
    MIN_TEXT_LENGTH: int = 20
    PRINTABLE_RATIO_THRESHOLD: float = 0.3
    MAX_PARSE_PAGES: int = 50
    RELAXED_PARSE_MAX_PAGES: int = 5
    ALTERNATE_PARSE_ATTEMPTS: int = 3
    OCR_MAX_IMAGES: int = 3

    # ── Field Extraction ──────────────────────
    AI_CONFIDENCE_THRESHOLD: float = 0.65

    # ── Slack ─────────────────────────────────
    SLACK_BOT_TOKEN: str = ""
    SLACK_API_URL: str = "https://slack.com/api"
    SLACK_APPROVAL_CHANNEL: str = "#approvals"
    SLACK_NOTIFICATION_CHANNEL: str = "#documents"

    # ── Webhook integrations ──────────────────
    # e.g. NOTIFICATION_WEBHOOK_URLS='["https://hooks.example.com/docs"]'
    NOTIFICATION_WEBHOOK_URLS: list[str] = Field(default_factory=list)
    STORE_DATA_WEBHOOK_URLS: list[str] = Field(default_factory=list)
    WEBHOOK_TIMEOUT_SECONDS: float = 15.0

    # ── Approvals ─────────────────────────────
    APPROVAL_DEFAULT_EXPIRY_HOURS: int = 24
    APPROVAL_SWEEP_INTERVAL_SECONDS: float = 300.0

    # ── Workflow Selection ────────────────────
    DEFAULT_WORKFLOW_NAME: str = "Document Processing Workflow"
    HYBRID_OVERRIDE_CONFIDENCE: float = 0.8
    CATEGORY_WORKFLOW_MAP: dict[str, str] = Field(
        default_factory=lambda: {
            "invoice": "Invoice Processing Workflow",
            "contract": "Contract Analysis Workflow",
            "receipt": "Receipt Processing Workflow",
            "legal": "Legal Document Workflow",
            "financial": "Financial Analysis Workflow",
            "form": "Form Processing Workflow",
            "other": "Document Processing Workflow",
        }
    )

    # ── LangSmith Tracing ────────────────────
    LANGSMITH_API_KEY: str = ""
    LANGSMITH_ENDPOINT: str = "https://api.smith.langchain.com"
    LANGSMITH_PROJECT: str = "docflow"
    LANGSMITH_TRACING: bool = False

    # ── Application ───────────────────────────
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ["../.env", ".env"], "extra": "ignore"}


settings = Settings()
