"""Run configuration."""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Any, Optional

import yaml

from sitedump.urls import derive_site_slug, is_http_url

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; SiteDump/0.1)"


class ConfigError(ValueError):
    """Invalid configuration, detected before any request is made."""


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _as_bool(value: Any) -> bool:
    # quoted YAML booleans arrive as strings
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "on", "1"):
            return True
        if lowered in ("false", "no", "off", "0", ""):
            return False
        raise ValueError(f"not a boolean: {value!r}")
    return bool(value)


@dataclasses.dataclass(frozen=True)
class Config:
    url: str = ""
    concurrency: int = 10
    timeout: float = 30.0  # seconds per request
    max_depth: int = 3
    max_pages: int = 1000
    output: Optional[str] = None
    results_dir: str = "results"
    user_agent: str = DEFAULT_USER_AGENT
    include_subdomains: bool = True
    max_page_bytes: int = 10 * 1024 * 1024
    max_image_bytes: int = 20 * 1024 * 1024
    min_image_bytes: int = 1024
    min_image_dimension: int = 16
    log_file: Optional[str] = None

    @staticmethod
    def from_yaml(path: Path) -> "Config":
        try:
            with Path(path).open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Top level of {path} must be a mapping, got {type(data).__name__}")
        known = {f.name for f in dataclasses.fields(Config)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config key(s) in {path}: {', '.join(unknown)}")
        d = Config()
        try:
            return Config(
                url=str(data.get("url", d.url) or ""),
                concurrency=int(data.get("concurrency", d.concurrency)),
                timeout=float(data.get("timeout", d.timeout)),
                max_depth=int(data.get("max_depth", d.max_depth)),
                max_pages=int(data.get("max_pages", d.max_pages)),
                output=_optional_str(data.get("output", d.output)),
                results_dir=str(data.get("results_dir", d.results_dir)),
                user_agent=str(data.get("user_agent", d.user_agent)),
                include_subdomains=_as_bool(data.get("include_subdomains", d.include_subdomains)),
                max_page_bytes=int(data.get("max_page_bytes", d.max_page_bytes)),
                max_image_bytes=int(data.get("max_image_bytes", d.max_image_bytes)),
                min_image_bytes=int(data.get("min_image_bytes", d.min_image_bytes)),
                min_image_dimension=int(data.get("min_image_dimension", d.min_image_dimension)),
                log_file=_optional_str(data.get("log_file", d.log_file)),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid value in {path}: {exc}") from exc

    def with_overrides(self, **overrides: Any) -> "Config":
        """Copy with every non-``None`` override applied."""
        return dataclasses.replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def validate(self) -> "Config":
        if not is_http_url(self.url):
            raise ConfigError(f"Invalid seed URL: {self.url!r}")
        if self.concurrency < 1:
            raise ConfigError("concurrency must be at least 1")
        if self.timeout <= 0:
            raise ConfigError("timeout must be positive")
        if self.max_depth < 0:
            raise ConfigError("max_depth must not be negative")
        if self.max_pages < 1:
            raise ConfigError("max_pages must be at least 1")
        if self.min_image_bytes < 0 or self.min_image_dimension < 0:
            raise ConfigError("image thresholds must not be negative")
        return self

    @property
    def site_slug(self) -> str:
        return derive_site_slug(self.url)

    def output_path(self) -> Path:
        if self.output:
            return Path(self.output)
        return Path(self.results_dir) / self.site_slug / "scraped.json"

    def images_dir(self) -> Path:
        return self.output_path().parent / "images"
