from pydantic_settings import BaseSettings
from pydantic import Field, validator
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    # Learned pattern store
    LLKB_ROOT: str = Field(default=".artk/llkb", description="Directory holding learned-patterns.json and its lock file")
    LLKB_MIN_CONFIDENCE: float = Field(default=0.5, description="Minimum confidence for a learned pattern to resolve a step")
    LLKB_MIN_SIMILARITY: float = Field(default=0.7, description="Minimum similarity for a fuzzy learned-pattern match")
    LLKB_CACHE_TTL: float = Field(default=5.0, description="Seconds a loaded pattern file is served from memory")

    # Fuzzy tier
    FUZZY_MIN_SIMILARITY: float = Field(default=0.85, description="Minimum similarity against the curated example corpus")

    # Healing
    HEALING_ENABLED: bool = Field(default=True, description="Global switch for the self-healing loop")
    HEALING_CONFIG_PATH: str = Field(default="config/healing.yaml", description="YAML file with healing policy and circuit breaker limits")
    HEALING_LOG_DIR: str = Field(default="artifacts/healing", description="Directory for per-journey heal-log.json files")
    HEALING_BACKUP_DIR: str | None = Field(default=None, description="Directory for test file backups (defaults to a temp dir)")

    # Test runner
    RUNNER_TIMEOUT: int = Field(default=300, description="Seconds before a verification run is abandoned")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")
    LOG_DIR: str = Field(default="logs", description="Directory for structured log files")

    @validator('LLKB_MIN_CONFIDENCE', 'LLKB_MIN_SIMILARITY', 'FUZZY_MIN_SIMILARITY')
    def validate_unit_interval(cls, v):
        """Validate that thresholds lie in [0, 1]."""
        if v < 0.0 or v > 1.0:
            raise ValueError(f"threshold must be between 0.0 and 1.0, got {v}")
        return v

    @validator('LLKB_CACHE_TTL')
    def validate_cache_ttl(cls, v):
        """Validate that LLKB_CACHE_TTL is not negative."""
        if v < 0:
            raise ValueError(f"LLKB_CACHE_TTL must not be negative, got {v}")
        return v

    @validator('RUNNER_TIMEOUT')
    def validate_runner_timeout(cls, v):
        """Validate that RUNNER_TIMEOUT is positive."""
        if v <= 0:
            raise ValueError(f"RUNNER_TIMEOUT must be positive, got {v}")
        return v

    @validator('LOG_LEVEL')
    def validate_log_level(cls, v):
        """Validate that LOG_LEVEL is a standard level name."""
        if v.upper() not in ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']:
            raise ValueError(f"LOG_LEVEL must be a standard logging level, got '{v}'")
        return v.upper()

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        extra = 'allow'  # Allow extra fields from .env file

settings = Settings()
