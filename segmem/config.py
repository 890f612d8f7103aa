"""Reading the memory module's configuration file."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when the configuration cannot be read or is incomplete."""


@dataclass(frozen=True)
class MemoryConfig:
    """Settings of the memory module."""

    port: str
    memory_size: int
    segment_zero_size: int
    segment_quantity: int
    memory_time_delay: int
    compactation_time_delay: int
    compactation_algorithm: str


_FIELDS = {
    "port": ("PUERTO_ESCUCHA", str),
    "memory_size": ("TAM_MEMORIA", int),
    "segment_zero_size": ("TAM_SEGMENTO_0", int),
    "segment_quantity": ("CANT_SEGMENTOS", int),
    "memory_time_delay": ("RETARDO_MEMORIA", int),
    "compactation_time_delay": ("RETARDO_COMPACTACION", int),
    "compactation_algorithm": ("ALGORITMO_ASIGNACION", str),
}


def _parse_pairs(text: str) -> dict[str, str]:
    values: dict[str, str] = {}
    for number, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, separator, value = line.partition("=")
        if not separator:
            raise ConfigError(f"line {number}: expected KEY=VALUE, got {raw_line!r}")
        values[key.strip()] = value.strip()
    return values


def parse_config(text: str) -> MemoryConfig:
    """Build a configuration from ``KEY=VALUE`` lines; ``#`` starts a comment line."""
    values = _parse_pairs(text)
    settings = {}
    for name, (key, convert) in _FIELDS.items():
        if key not in values:
            raise ConfigError(f"missing configuration key {key}")
        try:
            settings[name] = convert(values[key])
        except ValueError as exc:
            raise ConfigError(f"{key} must be an integer, got {values[key]!r}") from exc
    return MemoryConfig(**settings)


def read_config(path) -> MemoryConfig:
    """Read and parse the configuration file at ``path``."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        logger.error("Configuration file not found")
        raise ConfigError(f"could not read configuration file {path}: {exc}") from exc
    config = parse_config(text)
    logger.info("Configuration file read")
    return config