"""
Configuration management for m4a2mp3
"""

import os
import yaml
from pathlib import Path
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8787


class TranscodingConfig(BaseModel):
    ffmpeg_path: str = "auto"
    ffprobe_path: str = "auto"
    bin_directory: Optional[str] = None  # None = <project root>/bin
    temp_directory: Optional[str] = None  # None = system temp dir
    # Deadline budget (seconds)
    total_budget: float = 26.0  # Hard wall-clock limit of the hosting function
    safety_margin: float = 1.5  # Reserved for response assembly and cleanup
    # Sub-timeouts
    capability_timeout: float = 3.0
    probe_timeout: float = 3.0
    per_attempt_cap: float = 15.0
    # Minimum viable phase durations
    min_probe_time: float = 0.5
    min_attempt_time: float = 2.0
    # Input classification
    problematic_codecs: List[str] = Field(
        default_factory=lambda: ["amr_nb", "amr_wb", "alac", "opus", "pcm_s16be"]
    )
    problematic_brands: List[str] = Field(
        default_factory=lambda: ["3gp4", "3gp5", "3gp6", "3g2a", "qt"]
    )
    # Optional policy table; empty = built-in DEFAULT_STRATEGIES
    strategies: List[Dict[str, Any]] = Field(default_factory=list)


class DownloadConfig(BaseModel):
    timeout: float = 8.0
    max_bytes: int = 50 * 1024 * 1024
    min_time: float = 1.0
    chunk_size: int = 64 * 1024
    user_agent: str = "m4a2mp3"


class SecurityConfig(BaseModel):
    auth_token: Optional[str] = None
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "json"
    file: Optional[str] = None


class M4a2Mp3Config(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    transcoding: TranscodingConfig = Field(default_factory=TranscodingConfig)
    download: DownloadConfig = Field(default_factory=DownloadConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class EnvOverrides(BaseSettings):
    """Process environment values that win over the YAML file."""

    model_config = SettingsConfigDict(env_prefix="M4A2MP3_", extra="ignore")

    auth_token: Optional[str] = None
    total_budget: Optional[float] = None
    bin_directory: Optional[str] = None
    temp_directory: Optional[str] = None
    log_level: Optional[str] = None


def find_config_file() -> Optional[Path]:
    """Find the configuration file in standard locations."""
    explicit = os.environ.get("M4A2MP3_CONFIG")
    if explicit:
        return Path(explicit)

    search_paths = [
        Path.cwd() / "m4a2mp3.yaml",
        Path.cwd() / "m4a2mp3.yml",
        Path.cwd() / "config" / "m4a2mp3.yaml",
        Path.home() / ".config" / "m4a2mp3" / "m4a2mp3.yaml",
        Path("/etc/m4a2mp3/m4a2mp3.yaml"),
    ]

    for path in search_paths:
        if path.exists():
            return path

    return None


def apply_env_overrides(config: M4a2Mp3Config, env: Optional[EnvOverrides] = None) -> M4a2Mp3Config:
    """Apply ``M4A2MP3_*`` environment variables on top of a loaded config."""
    env = env or EnvOverrides()

    if env.auth_token:
        config.security.auth_token = env.auth_token
    if env.total_budget is not None:
        config.transcoding.total_budget = env.total_budget
    if env.bin_directory:
        config.transcoding.bin_directory = env.bin_directory
    if env.temp_directory:
        config.transcoding.temp_directory = env.temp_directory
    if env.log_level:
        config.logging.level = env.log_level.upper()

    return config


def load_config(config_path: Optional[str] = None) -> M4a2Mp3Config:
    """Load configuration from YAML file or use defaults, then apply env overrides."""
    config_file = Path(config_path) if config_path else find_config_file()

    if config_file and config_file.exists():
        with open(config_file, "r") as f:
            yaml_data = yaml.safe_load(f) or {}
        config = M4a2Mp3Config(**yaml_data)
    else:
        config = M4a2Mp3Config()

    return apply_env_overrides(config)


# Global config instance
_config: Optional[M4a2Mp3Config] = None


def get_config() -> M4a2Mp3Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: M4a2Mp3Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
