"""
Configuration module for Diabetes Risk Service.
Uses Pydantic BaseSettings for validation - app fails fast if config is malformed.
"""
import logging

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

SERVICE_NAME = "Diabetes Prediction Backend API"
SERVICE_VERSION = "1.0.0"


class Settings(BaseSettings):
    """
    Application settings with validation.
    Every field has a safe local default so the service can start for development.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API Configuration
    risk_svc_host: str = Field(default="0.0.0.0", description="API host")
    risk_svc_port: int = Field(default=3001, description="API port")
    risk_svc_reload: bool = Field(default=False, description="Enable hot reload")
    risk_svc_environment: str = Field(
        default="development",
        description="Deployment environment; 'production' hides error details from clients"
    )
    risk_svc_startup_probe: bool = Field(
        default=False,
        description="Send a reference record to the inference endpoint at startup"
    )

    # Inference Endpoint Configuration
    inference_endpoint_name: str = Field(
        default="diabetes-risk-endpoint",
        description="Identifier of the deployed scoring endpoint"
    )
    inference_endpoint_url: str = Field(
        default="http://localhost:8080/invocations",
        description="URL the inference client posts patient records to"
    )
    inference_api_key: str = Field(default="", description="Optional API key sent to the endpoint")
    inference_timeout: float = Field(default=30.0, gt=0, description="Endpoint call timeout in seconds")

    # CORS
    frontend_url: str = Field(default="http://localhost:3000", description="Allowed CORS origin")

    # Inbound rate limiting for /api/ routes
    rate_limit_window_ms: int = Field(default=15 * 60 * 1000, gt=0, description="Rate limit window (ms)")
    rate_limit_max_requests: int = Field(default=100, gt=0, description="Requests allowed per window per IP")

    @model_validator(mode="after")
    def validate_endpoint(self) -> "Settings":
        """Warn about configurations that will start but cannot serve predictions."""
        if not self.inference_endpoint_url:
            logger.warning("INFERENCE_ENDPOINT_URL not set - predictions will fail")
        elif self.is_production and "localhost" in self.inference_endpoint_url:
            logger.warning(
                "Production environment is pointing at a localhost inference endpoint",
                extra={"endpoint_url": self.inference_endpoint_url}
            )
        return self

    @property
    def is_production(self) -> bool:
        """True when error details must not be exposed to clients."""
        return self.risk_svc_environment.lower() == "production"

    @property
    def rate_limit_window_seconds(self) -> float:
        """Rate limit window converted to seconds."""
        return self.rate_limit_window_ms / 1000


# Create global settings instance
settings = Settings()

# Backwards-compatible exports for existing code
API_HOST = settings.risk_svc_host
API_PORT = settings.risk_svc_port
API_RELOAD = settings.risk_svc_reload

INFERENCE_ENDPOINT_NAME = settings.inference_endpoint_name
INFERENCE_ENDPOINT_URL = settings.inference_endpoint_url
INFERENCE_TIMEOUT = settings.inference_timeout
