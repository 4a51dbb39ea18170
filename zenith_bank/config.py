"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class ZenithConfig(BaseSettings):
    """Zenith Bank configuration"""
    
    # Storage configuration
    storage_backend: str = "sqlite"  # sqlite or memory
    database_path: str = "zenith_bank.db"
    
    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    
    # Security configuration
    jwt_secret: str = "change-me-in-production"
    jwt_expiry_hours: int = 24
    jwt_algorithm: str = "HS256"
    
    # Credential hashing (scrypt cost parameters)
    scrypt_n: int = 16384
    scrypt_r: int = 8
    scrypt_p: int = 1
    scrypt_max_n: int = 1048576  # ceiling for costs read back from stored digests
    
    # Seeded administrator
    admin_email: str = "admin@zenithbank.com"
    admin_password: str = "admin123"
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout
    
    # Business rules configuration
    account_number_length: int = 10
    account_number_max_attempts: int = 20
    pin_length: int = 4
    currency_symbol: str = "$"
    
    # Feature flags
    enable_audit_logging: bool = True
    
    class Config:
        env_prefix = "ZENITH_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = ZenithConfig()


def get_config() -> ZenithConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> ZenithConfig:
    """Reload configuration from environment"""
    global config
    config = ZenithConfig()
    return config
