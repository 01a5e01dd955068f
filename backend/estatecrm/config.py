"""
EstateCRM Reminders - Configuration Module

Purpose: Centralized configuration management using Pydantic Settings.
Loads from environment variables with validation and type checking.

Testing:
    from estatecrm.config import settings
    print(settings.REMINDER_COOLDOWN_MINUTES)  # 60

AWS Deployment Notes:
    - Set environment variables in ECS task definition or Lambda configuration
    - Never hardcode AWS credentials; use IAM roles
    - SNS platform application (FCM/APNS) must exist before enabling PUSH_PROVIDER=sns
"""

from typing import List, Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
import json


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # =============================================================================
    # CORE APPLICATION
    # =============================================================================
    ENVIRONMENT: Literal["local", "development", "staging", "production"] = "local"
    DEBUG: bool = True
    API_V1_PREFIX: str = "/api/v1"
    CORS_ORIGINS: str = '["http://localhost:3000","http://localhost:5173"]'

    # =============================================================================
    # AWS CONFIGURATION
    # =============================================================================
    AWS_REGION: str = "us-east-1"

    # AWS credentials (only for local testing; use IAM roles in production)
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None

    # =============================================================================
    # DATABASE CONFIGURATION
    # =============================================================================
    USE_DYNAMODB_LOCAL: bool = True
    DYNAMODB_LOCAL_ENDPOINT: str = "http://localhost:8000"

    DYNAMODB_TABLE_REMINDERS: str = "estatecrm-reminders-local"
    DYNAMODB_TABLE_EMPLOYEES: str = "estatecrm-employees-local"
    DYNAMODB_TABLE_NOTIFICATIONS: str = "estatecrm-notifications-local"

    # =============================================================================
    # REMINDERS & SCHEDULING
    # =============================================================================
    SCHEDULER_PROVIDER: Literal["apscheduler", "eventbridge"] = "apscheduler"
    REMINDER_CHECK_INTERVAL_SECONDS: int = 60

    EVENTBRIDGE_RULE_NAME: str = "estatecrm-reminder-check"
    EVENTBRIDGE_SCHEDULE_RATE: str = "rate(1 minute)"

    # Minimum gap between two deliveries of the same reminder
    REMINDER_COOLDOWN_MINUTES: int = 60
    DEFAULT_SNOOZE_MINUTES: int = 15
    REMINDER_TITLE_MAX_LENGTH: int = 100

    # =============================================================================
    # PUSH & REALTIME NOTIFICATIONS
    # =============================================================================
    PUSH_PROVIDER: Literal["sns", "log"] = "log"
    SNS_PLATFORM_APPLICATION_ARN: Optional[str] = None
    PUSH_NOTIFICATION_TITLE: str = "Reminder Alert"

    # Clear an employee's stored device token when the provider rejects it
    CLEAR_INVALID_DEVICE_TOKENS: bool = True

    BROADCAST_EVENT_NAME: str = "newNotification"

    # With SCHEDULER_PROVIDER=eventbridge the tick runs in Lambda, away from the
    # WebSocket clients. Each API process then relays stored notifications to
    # its own clients on this interval.
    BROADCAST_RELAY_INTERVAL_SECONDS: int = 5
    BROADCAST_RELAY_LOOKBACK_SECONDS: int = 60

    # =============================================================================
    # LOGGING & MONITORING
    # =============================================================================
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "json"

    # =============================================================================
    # FEATURE FLAGS
    # =============================================================================
    ENABLE_REMINDERS: bool = True
    ENABLE_PUSH: bool = True
    ENABLE_BROADCAST: bool = True

    # =============================================================================
    # COMPUTED PROPERTIES
    # =============================================================================

    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.ENVIRONMENT == "production"

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as a list"""
        return json.loads(self.CORS_ORIGINS)

    @property
    def dynamodb_endpoint(self) -> Optional[str]:
        """Get DynamoDB endpoint (None for AWS service, URL for local)"""
        if self.USE_DYNAMODB_LOCAL:
            return self.DYNAMODB_LOCAL_ENDPOINT
        return None

    def get_table_name(self, table_type: str) -> str:
        """Get DynamoDB table name by type"""
        table_map = {
            "reminders": self.DYNAMODB_TABLE_REMINDERS,
            "employees": self.DYNAMODB_TABLE_EMPLOYEES,
            "notifications": self.DYNAMODB_TABLE_NOTIFICATIONS,
        }
        return table_map.get(table_type, "")


# Global settings instance
settings = Settings()


# Validation on startup
def validate_settings():
    """Validate required settings based on providers"""
    errors = []

    if settings.PUSH_PROVIDER == "sns" and not settings.SNS_PLATFORM_APPLICATION_ARN:
        errors.append("SNS_PLATFORM_APPLICATION_ARN is required when PUSH_PROVIDER=sns")

    if settings.is_production and settings.USE_DYNAMODB_LOCAL:
        errors.append("USE_DYNAMODB_LOCAL must be false in production")

    if settings.is_production and settings.PUSH_PROVIDER == "log":
        errors.append("PUSH_PROVIDER=log delivers nothing; use sns in production")

    if settings.REMINDER_CHECK_INTERVAL_SECONDS <= 0:
        errors.append("REMINDER_CHECK_INTERVAL_SECONDS must be positive")

    if settings.BROADCAST_RELAY_INTERVAL_SECONDS <= 0:
        errors.append("BROADCAST_RELAY_INTERVAL_SECONDS must be positive")

    if settings.BROADCAST_RELAY_LOOKBACK_SECONDS < settings.BROADCAST_RELAY_INTERVAL_SECONDS:
        errors.append("BROADCAST_RELAY_LOOKBACK_SECONDS must cover at least one relay interval")

    if settings.REMINDER_COOLDOWN_MINUTES < 0:
        errors.append("REMINDER_COOLDOWN_MINUTES must not be negative")

    if settings.DEFAULT_SNOOZE_MINUTES <= 0:
        errors.append("DEFAULT_SNOOZE_MINUTES must be positive")

    try:
        settings.cors_origins_list
    except ValueError:
        errors.append("CORS_ORIGINS must be a JSON list of origins")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ValueError(error_msg)


# Print config summary (for debugging)
def print_config_summary():
    """Print configuration summary (safe - no secrets)"""
    print("\n" + "="*60)
    print("EstateCRM Reminders Configuration Summary")
    print("="*60)
    print(f"Environment: {settings.ENVIRONMENT}")
    print(f"Debug Mode: {settings.DEBUG}")
    print(f"Database: {'DynamoDB Local' if settings.USE_DYNAMODB_LOCAL else 'DynamoDB AWS'}")
    print(f"Scheduler: {settings.SCHEDULER_PROVIDER} (every {settings.REMINDER_CHECK_INTERVAL_SECONDS}s)")
    if settings.SCHEDULER_PROVIDER == "eventbridge":
        print(f"EventBridge Rule: {settings.EVENTBRIDGE_RULE_NAME} ({settings.EVENTBRIDGE_SCHEDULE_RATE})")
        if settings.ENABLE_BROADCAST:
            print(f"Broadcast Relay: every {settings.BROADCAST_RELAY_INTERVAL_SECONDS}s")
    print(f"Cooldown: {settings.REMINDER_COOLDOWN_MINUTES} min")
    print(f"Push Provider: {settings.PUSH_PROVIDER}")
    print("="*60 + "\n")
