"""Configuration management for the Node Banana workflow engine.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the NODEBANANA_ prefix,
allowing the engine to be pointed at different generation services without code
changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (NODEBANANA_* prefix)
2. .env file in the project root
3. Default values defined in NodeBananaConfig

Example .env file:
    NODEBANANA_IMAGE_SERVICE_URL=http://localhost:3000/api/generate
    NODEBANANA_TEXT_SERVICE_URL=http://localhost:3000/api/llm
    NODEBANANA_REQUEST_TIMEOUT=300
    NODEBANANA_GENERATIONS_DIR=generations

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.

Usage Example
-------------
    from nodebanana.core.config import config

    print(config.image_service_url)
    print(config.logs_dir)

Directory Management
--------------------
The configuration automatically creates required directories on initialization:
- data_dir: Workflow documents and the cost ledger file
- logs_dir: One JSON file per run log session
- generations_dir: Best-effort copies of generated images (only when set)
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NodeBananaConfig(BaseSettings):
    """Main configuration for the Node Banana workflow engine.

    Attributes
    ----------
    Service Settings:
        image_service_url : str
            Endpoint of the image generation service
        text_service_url : str
            Endpoint of the text generation service
        request_timeout : float
            Upper bound in seconds for a single generation call

    Paths:
        data_dir : Path
            Directory for workflow documents and the cost ledger
        logs_dir : Path
            Directory for run log sessions
        generations_dir : Path | None
            Directory that receives a copy of every generated image

    Logging:
        log_max_sessions : int
            Number of log session files kept on disk

    Autosave:
        autosave_interval : float
            Seconds between autosave checks

    Server Settings:
        server_host : str
            Server bind address
        server_port : int
            Server port (1024-65535)

    Examples
    --------
        >>> custom_config = NodeBananaConfig(
        ...     image_service_url="http://gpu-box:3000/api/generate",
        ...     request_timeout=120,
        ... )
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="NODEBANANA_",
        case_sensitive=False,
    )

    # Generation services
    image_service_url: str = Field(
        default="http://localhost:3000/api/generate",
        description="Endpoint of the image generation service",
    )
    text_service_url: str = Field(
        default="http://localhost:3000/api/llm",
        description="Endpoint of the text generation service",
    )
    request_timeout: float = Field(
        default=300.0,
        description="Timeout in seconds for a single generation call",
        gt=0,
        le=600,
    )

    # Paths
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory for workflow documents and the cost ledger",
    )
    logs_dir: Path = Field(
        default=Path("logs"),
        description="Directory for run log sessions",
    )
    generations_dir: Path | None = Field(
        default=None,
        description="Directory receiving a copy of each generated image (disabled when unset)",
    )

    # Logging
    log_max_sessions: int = Field(
        default=10,
        description="Number of log session files kept on disk",
        ge=1,
    )

    # Autosave
    autosave_interval: float = Field(
        default=90.0,
        description="Seconds between autosave checks",
        gt=0,
    )

    # Server settings
    server_host: str = Field(
        default="127.0.0.1",
        description="Server bind address",
    )
    server_port: int = Field(
        default=8750,
        description="Server port",
        ge=1024,
        le=65535,
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create required directories.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        if self.generations_dir is not None:
            self.generations_dir.mkdir(parents=True, exist_ok=True)

    @property
    def cost_ledger_path(self) -> Path:
        """Path of the JSON file holding per-workflow cost totals."""
        return self.data_dir / "costs.json"


# Global configuration instance
# Loads values from environment variables (NODEBANANA_* prefix) and .env file.
config = NodeBananaConfig()
