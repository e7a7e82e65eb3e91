#!/usr/bin/env python3
"""
Configuration module for the Generate Proxy.
Loads settings from an optional YAML file, applies environment overrides,
validates everything with Pydantic and initializes logging.
"""

import os
import sys
import logging
from typing import Dict, Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

CONFIG_FILE = "config.yml"
CONFIG_FILE_ENV = "GENERATE_PROXY_CONFIG"
LOGGER_NAME = "generate-proxy"

# Environment variable -> (section, field)
ENV_OVERRIDES = {
    "OPENAI_API_KEY": ("openai", "api_key"),
    "OPENAI_BASE_URL": ("openai", "base_url"),
    "OPENAI_MODEL": ("openai", "default_model"),
    "LOG_LEVEL": ("server", "log_level"),
    "GENERATE_PROXY_DEBUG": ("server", "debug"),
}


class ServerConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    host: str = "0.0.0.0"
    port: int = 5555
    log_level: str = "INFO"
    http_log_level: str = "INFO"
    debug: bool = False


class OpenAIConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    api_key: Optional[str] = None
    base_url: str = "https://api.openai.com/v1"
    default_model: str = "gpt-4o-mini"
    timeout: float = 30.0
    user_agent: str = "Generate-Proxy/1.0"


class GenerationDefaults(BaseModel):
    """Values used for generation parameters the client did not provide."""
    model_config = ConfigDict(frozen=True, extra="allow")

    temperature: float = 0.7
    max_tokens: int = 2000
    top_p: float = 1
    frequency_penalty: float = 0
    presence_penalty: float = 0


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    server: ServerConfig = ServerConfig()
    openai: OpenAIConfig = OpenAIConfig()
    generation: GenerationDefaults = GenerationDefaults()
    function_version: str = "1.0"

    @property
    def has_api_key(self) -> bool:
        return bool(self.openai.api_key)


def apply_env_overrides(config_data: Dict[str, Any], environ=None) -> Dict[str, Any]:
    """Overlay known environment variables onto raw configuration data."""
    environ = os.environ if environ is None else environ
    for env_name, (section, field) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is None or value == "":
            continue
        config_data.setdefault(section, {})
        if config_data[section] is None:
            config_data[section] = {}
        config_data[section][field] = value
    return config_data


def read_config_file(path: str) -> Dict[str, Any]:
    """Read the YAML config file. A missing file means "use defaults"."""
    try:
        with open(path, encoding="utf-8") as file:
            return yaml.safe_load(file) or {}
    except FileNotFoundError:
        return {}


def load_config(path: Optional[str] = None, environ=None) -> Settings:
    """Load and validate configuration with Pydantic models."""
    environ = os.environ if environ is None else environ
    path = path or environ.get(CONFIG_FILE_ENV, CONFIG_FILE)
    try:
        config_data = read_config_file(path)
        if not isinstance(config_data, dict):
            print(f"Error in configuration {path}: top level must be a mapping")
            sys.exit(1)
        config_data = apply_env_overrides(config_data, environ)
        return Settings(**config_data)
    except (yaml.YAMLError, ValidationError) as e:
        print(f"Error in configuration {path}: {e}")
        sys.exit(1)


def setup_logging(settings: Settings) -> logging.Logger:
    """Configure logging based on validated configuration."""
    log_level = settings.server.log_level
    log_level_int = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level_int,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    logger_ = logging.getLogger(LOGGER_NAME)
    logger_.setLevel(log_level_int)
    logger_.debug("Logging level set to %s", log_level)
    return logger_


logger = logging.getLogger(LOGGER_NAME)
