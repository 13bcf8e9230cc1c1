"""
API configuration settings.
"""

from typing import Optional

from pydantic import validator
from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """API configuration settings."""
    
    # API Settings
    api_title: str = "Book Search GraphQL API"
    api_version: str = "1.0.0"
    api_description: str = "GraphQL API for user accounts and saved book lists"
    
    # Server Settings
    host: str = "0.0.0.0"
    port: int = 3001
    debug: bool = False
    graphiql: bool = True
    
    # Database Settings
    mongodb_url: str = "mongodb://127.0.0.1:27017"
    mongodb_database: str = "googlebooks"
    users_collection: str = "users"
    
    # Security Settings
    secret_key: str = "mysecretsshhhhh"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 120
    
    # CORS Settings
    cors_origins: list = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list = ["*"]
    cors_allow_headers: list = ["*"]
    
    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None
    
    model_config = {
        "env_file": ".env",
        "extra": "ignore"  # Ignore extra fields from .env
    }

    @validator('access_token_expire_minutes')
    def validate_token_expiry(cls, v):
        """Ensure tokens expire."""
        if v < 1:
            raise ValueError('access_token_expire_minutes must be at least 1')
        return v

    @validator('log_level')
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()
    
    @validator('log_format')
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()


# Global config instance
config = APIConfig()
