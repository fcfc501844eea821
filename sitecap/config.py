"""Configuration system for sitecap.

This module provides YAML-backed settings for the browser, per-request
capture defaults and the HTTP server, with environment-specific overrides
selected by ``SITECAP_ENV``.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .capture.browser_factory import BrowserConfig, BrowserEngineType
from .capture.engine import CaptureEngineConfig
from .errors import ConfigurationError
from .imaging.resize import parse_resize_spec
from .utils.params import MAX_SECONDS, parse_domain_allowlist, parse_viewport

logger = logging.getLogger(__name__)

ENV_VAR = "SITECAP_ENV"
CONFIG_PATH_VAR = "SITECAP_CONFIG"
DEFAULT_CONFIG_FILE = "sitecap.yaml"
DEFAULT_CONTEXT_VIEWPORT = "1366x854"
DEFAULT_CONTEXT_TIMEOUT = 30


class BrowserSettings(BaseModel):
    """Browser launch settings."""

    engine: str = Field(default=BrowserEngineType.CHROMIUM.value, description="Browser engine")
    headless: bool = Field(default=True, description="Run headless")
    cdp_endpoint: Optional[str] = Field(default=None, description="Existing Chromium CDP endpoint")
    user_agent: Optional[str] = Field(default=None, description="User-Agent override")
    ignore_https_errors: bool = Field(default=False, description="Ignore TLS errors")
    locale: Optional[str] = Field(default=None, description="Context locale")
    timezone: Optional[str] = Field(default=None, description="Context timezone ID")
    max_concurrent_pages: int = Field(default=4, ge=1, description="Concurrent page sessions")

    @field_validator('engine')
    @classmethod
    def validate_engine(cls, v):
        valid = {e.value for e in BrowserEngineType}
        if v not in valid:
            raise ValueError(f"Engine must be one of: {sorted(valid)}")
        return v


class CaptureDefaults(BaseModel):
    """Defaults applied to requests that do not set a value themselves."""

    viewport: str = Field(default="", description="Default viewport as WxH")
    timeout: int = Field(default=0, ge=0, le=MAX_SECONDS, description="Timeout in seconds")
    wait: int = Field(default=0, ge=0, le=MAX_SECONDS, description="Post-load wait in seconds")
    domains: List[str] = Field(default_factory=list, description="Domain allow-list")
    headers: Dict[str, str] = Field(default_factory=dict, description="Custom request headers")
    full_height: bool = Field(default=False, description="Full-height screenshots")
    resize: Optional[str] = Field(default=None, description="Default resize specification")

    @field_validator('viewport')
    @classmethod
    def validate_viewport(cls, v):
        try:
            parse_viewport(v)
        except ConfigurationError as e:
            raise ValueError(str(e))
        return v

    @field_validator('domains')
    @classmethod
    def validate_domains(cls, v):
        try:
            return list(parse_domain_allowlist(v))
        except ConfigurationError as e:
            raise ValueError(str(e))

    @field_validator('resize')
    @classmethod
    def validate_resize(cls, v):
        if v:
            try:
                parse_resize_spec(v)
            except ConfigurationError as e:
                raise ValueError(str(e))
        return v or None


class ServerSettings(BaseModel):
    """HTTP server settings."""

    listen: str = Field(default="localhost", description="Bind address")
    port: int = Field(default=8080, ge=1, le=65535, description="Bind port")


class SitecapSettings(BaseModel):
    """Root configuration."""

    environment: str = Field(default="production", description="Environment name")
    debug: bool = Field(default=False, description="Trace interception and responses")
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    defaults: CaptureDefaults = Field(default_factory=CaptureDefaults)
    server: ServerSettings = Field(default_factory=ServerSettings)
    environments: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="Environment-specific overrides"
    )

    def resolved(self) -> "SitecapSettings":
        """Settings with the current environment's overrides merged in."""
        overrides = self.environments.get(self.environment)
        if not overrides:
            return self

        data = self.model_dump()
        for section, values in overrides.items():
            if isinstance(values, dict) and isinstance(data.get(section), dict):
                data[section].update(values)
            else:
                data[section] = values
        data['environments'] = {}
        return SitecapSettings(**data)

    def get_browser_config(self) -> BrowserConfig:
        """Browser configuration with environment overrides applied."""
        browser = self.resolved().browser
        return BrowserConfig(
            engine=browser.engine,
            headless=browser.headless,
            cdp_endpoint=browser.cdp_endpoint,
            user_agent=browser.user_agent,
            ignore_https_errors=browser.ignore_https_errors,
            locale=browser.locale,
            timezone=browser.timezone,
        )

    def get_engine_config(self, debug: Optional[bool] = None) -> CaptureEngineConfig:
        """Engine configuration with environment overrides applied.

        Args:
            debug: Overrides the configured debug flag when not None
        """
        settings = self.resolved()
        return CaptureEngineConfig(
            browser_config=self.get_browser_config(),
            max_concurrent_pages=settings.browser.max_concurrent_pages,
            debug=settings.debug if debug is None else debug,
        )


class SettingsManager:
    """Manager for settings loading and caching."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize settings manager.

        Args:
            config_path: Path to a YAML settings file. Defaults to
                ``$SITECAP_CONFIG`` or ``./sitecap.yaml``; a missing default
                file means built-in defaults.
        """
        self._explicit = config_path is not None or CONFIG_PATH_VAR in os.environ
        if config_path is None:
            config_path = os.environ.get(CONFIG_PATH_VAR, DEFAULT_CONFIG_FILE)

        self.config_path = Path(config_path)
        self._settings: Optional[SitecapSettings] = None
        self._loaded_env: Optional[str] = None

    def load(self, force_reload: bool = False) -> SitecapSettings:
        """Load settings from the YAML file.

        Raises:
            ConfigurationError: If an explicitly named file is missing, the
                YAML is invalid or validation fails
        """
        current_env = os.environ.get(ENV_VAR)

        if self._settings is not None and not force_reload and current_env == self._loaded_env:
            return self._settings

        config_data: Dict[str, Any] = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}")
            if not isinstance(config_data, dict):
                raise ConfigurationError(f"{self.config_path} must contain a mapping")
            logger.debug(f"Loaded settings from {self.config_path}")
        elif self._explicit:
            raise ConfigurationError(f"Configuration file not found: {self.config_path}")

        config_data = copy.deepcopy(config_data)
        if current_env:
            config_data['environment'] = current_env

        try:
            self._settings = SitecapSettings(**config_data)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {e}")

        self._loaded_env = current_env
        return self._settings

    @property
    def settings(self) -> SitecapSettings:
        """Current settings, loading if necessary."""
        if self._settings is None:
            return self.load()
        return self._settings

    @property
    def environment(self) -> str:
        return self.settings.environment


def load_settings(config_path: Optional[Union[str, Path]] = None) -> SitecapSettings:
    """Load and resolve settings in one call."""
    return SettingsManager(config_path).load().resolved()
