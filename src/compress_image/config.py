"""Configuration loading from environment variables and CLI flags.

Budgets and the upload limit differ per deployment, so none of them is a
constant: each comes from the environment (or a ``.env`` file) and can be
overridden explicitly.
"""

import os
import re
from dataclasses import dataclass
from typing import Optional, Union

from compress_image.models import SearchBudget

DEFAULTS = {
    "target_size": "300kb",
    "enhance_target_size": "100kb",
    "max_upload_size": "50mb",
    "host": "0.0.0.0",
    "port": "8080",
    "cors_origins": "*",
}

ENV_KEYS = {
    "target_size": "COMPRESS_TARGET_SIZE",
    "enhance_target_size": "COMPRESS_ENHANCE_TARGET_SIZE",
    "max_upload_size": "COMPRESS_MAX_UPLOAD_SIZE",
    "host": "COMPRESS_HOST",
    "port": "PORT",
    "cors_origins": "COMPRESS_CORS_ORIGINS",
}

_UNITS = {
    "": 1, "b": 1,
    "k": 1024, "kb": 1024,
    "m": 1024**2, "mb": 1024**2,
    "g": 1024**3, "gb": 1024**3,
}
_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([kmg]?b?)\s*$", re.IGNORECASE)


def parse_size(value: Union[str, int]) -> int:
    """Parse ``"300kb"``, ``"10MB"`` or ``"2048"`` into a byte count (1024-based units)."""
    if isinstance(value, int):
        size = value
    else:
        m = _SIZE_RE.match(value)
        if not m:
            raise ValueError(f"Invalid size: {value!r}")
        size = int(float(m.group(1)) * _UNITS[m.group(2).lower()])
    if size <= 0:
        raise ValueError(f"Size must be positive: {value!r}")
    return size


@dataclass
class Config:
    target_size: int
    enhance_target_size: int
    max_upload_size: int
    host: str = DEFAULTS["host"]
    port: int = 8080
    cors_origins: tuple[str, ...] = ("*",)

    @classmethod
    def from_env(
        cls,
        target_size: Optional[Union[str, int]] = None,
        enhance_target_size: Optional[Union[str, int]] = None,
        max_upload_size: Optional[Union[str, int]] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ) -> "Config":
        overrides = {
            "target_size": target_size,
            "enhance_target_size": enhance_target_size,
            "max_upload_size": max_upload_size,
            "host": host,
            "port": port,
        }

        def resolve(name: str):
            if overrides.get(name) is not None:
                return overrides[name]
            return os.environ.get(ENV_KEYS[name], "").strip() or DEFAULTS[name]

        sizes = {}
        for name in ("target_size", "enhance_target_size", "max_upload_size"):
            try:
                sizes[name] = parse_size(resolve(name))
            except ValueError as e:
                raise RuntimeError(f"{e}. Check {ENV_KEYS[name]} in your environment or .env file.") from e

        try:
            port_value = int(resolve("port"))
        except ValueError as e:
            raise RuntimeError(f"Invalid port. Check {ENV_KEYS['port']}.") from e
        if not 0 < port_value < 65536:
            raise RuntimeError(f"Port out of range: {port_value}. Check {ENV_KEYS['port']}.")

        origins = tuple(o.strip() for o in resolve("cors_origins").split(",") if o.strip())
        return cls(
            host=resolve("host"),
            port=port_value,
            cors_origins=origins or ("*",),
            **sizes,
        )

    def compress_budget(self) -> SearchBudget:
        return SearchBudget(target_size=self.target_size)

    def enhance_budget(self) -> SearchBudget:
        return SearchBudget(target_size=self.enhance_target_size)
