"""
Application Configuration
Uses Pydantic Settings for environment-based configuration
"""

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "Support Rooms API"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = Field(default="development", pattern="^(development|staging|production)$")
    DEBUG: bool = Field(default=False)
    API_V1_STR: str = "/api/v1"

    # CORS
    # Allow str because it can be a comma-separated string in .env
    CORS_ORIGINS: str | list[str] = Field(
        default=["http://localhost:5173", "http://localhost:8000"]
    )

    # Database (must use an async driver: +aiosqlite, +aiomysql, +asyncpg)
    DATABASE_URL: str = "sqlite+aiosqlite:///./support_rooms.db"
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_ECHO: bool = False

    # Room allocation
    MAX_ROOM_MEMBERS: int = Field(default=10, ge=1)
    JOIN_MAX_RETRIES: int = Field(default=5, ge=1)
    JOIN_RETRY_BASE_DELAY_MS: int = Field(default=100, ge=0)  # doubled on every attempt

    # Moderation
    DEFAULT_MODERATION_REASON: str = "Violates community guidelines"
    MAX_SUSPENSION_DAYS: int = 365

    # Pagination
    DEFAULT_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 100

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string"""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v


# Create global settings instance

load_dotenv()
settings = Settings()


class RoomStatus:
    """Support room status constants"""

    OPEN = "open"
    FULL = "full"
    ARCHIVED = "archived"


class UserStatus:
    """User account status constants (community participation only)"""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    BANNED = "banned"


class Stage:
    """Experience stage constants for support groups"""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

    ALL = (BEGINNER, INTERMEDIATE, ADVANCED)


class RoomRole:
    """Role a member holds inside a room"""

    MEMBER = "member"


class ModerationActionType:
    """Moderation action type constants for audit logging"""

    KICK = "kick"
    SUSPEND = "suspend"
    UNSUSPEND = "unsuspend"
    BAN = "ban"
    UNBAN = "unban"
    DELETE_MESSAGE = "delete_message"
    DELETE_POST = "delete_post"
    DELETE_COMMENT = "delete_comment"
    ARCHIVE_ROOM = "archive_room"
