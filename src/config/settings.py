"""Application settings loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # User storage
    user_store_backend: str = "memory"  # memory | json | dynamodb
    user_store_path: str = "users.json"  # path for the json backend
    dynamodb_table_name: str = "users"
    aws_region: str = "us-east-1"

    # Gateway adapter
    api_gateway_base_path: str = "/"

    # Body parsing
    json_body_limit: int = 102400  # bytes, after decompression
    form_body_limit: int = 102400
    form_parameter_limit: int = 1000
    form_depth: int = 5
    form_array_limit: int = 20

    # Response compression
    gzip_minimum_size: int = 1024

    # Cross-origin
    cors_allow_methods: str = "GET,HEAD,PUT,PATCH,POST,DELETE"
    cors_max_age: int = 0  # 0 = omit Access-Control-Max-Age

    # Logging
    log_level: str = "INFO"
    log_file: str = ""  # Empty = stdout only

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def cors_methods_list(self) -> list[str]:
        """Parse comma-separated methods, upper-cased, blanks dropped."""
        return [m.strip().upper() for m in self.cors_allow_methods.split(",") if m.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
