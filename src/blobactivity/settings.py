import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from dotenv import load_dotenv

from .errors import InvalidSettingsError, UnsupportedMethodError

DEFAULT_BLOCK_SIZE = 4 * 1024 * 1024
DEFAULT_MAX_CONCURRENCY = 16
MAX_BLOCK_SIZE = 4000 * 1024 * 1024  # service limit for a single block
DEFAULT_ENDPOINT_SUFFIX = "blob.core.windows.net"

# Host setting key -> environment variable
ENV_VARS = {
    "azure_storage_account": "AZURE_STORAGE_ACCOUNT",
    "azure_storage_access_key": "AZURE_STORAGE_ACCESS_KEY",
    "container_name": "AZURE_CONTAINER",
    "method": "BLOB_METHOD",
    "block_size": "BLOB_UPLOAD_BLOCK_SIZE",
    "max_concurrency": "BLOB_UPLOAD_MAX_CONCURRENCY",
    "timeout": "BLOB_TIMEOUT_SECONDS",
    "endpoint_suffix": "AZURE_STORAGE_ENDPOINT_SUFFIX",
}

REQUIRED_KEYS = (
    "azure_storage_account",
    "azure_storage_access_key",
    "method",
    "container_name",
)


class Method(Enum):
    UPLOAD = "upload"
    LIST = "list"

    @classmethod
    def parse(cls, value: "Method | str") -> "Method":
        """Match a method name case-sensitively; anything unknown is rejected."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            supported = ", ".join(m.value for m in cls)
            raise UnsupportedMethodError(
                f"Unsupported method '{value}', expected one of: {supported}"
            ) from None


@dataclass(frozen=True)
class UploadTuning:
    block_size: int = DEFAULT_BLOCK_SIZE
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY

    def __post_init__(self) -> None:
        if not 0 < self.block_size <= MAX_BLOCK_SIZE:
            raise InvalidSettingsError(
                f"block_size must be between 1 and {MAX_BLOCK_SIZE} bytes, got {self.block_size}"
            )
        if self.max_concurrency < 1:
            raise InvalidSettingsError(
                f"max_concurrency must be at least 1, got {self.max_concurrency}"
            )


@dataclass(frozen=True)
class ConnectionSettings:
    """
    Settings for one connector instance.
    Validated once at construction and never mutated afterwards.
    """

    account: str
    access_key: str = field(repr=False)
    container_name: str
    method: Method
    upload_tuning: UploadTuning = field(default_factory=UploadTuning)
    timeout: float | None = None
    endpoint_suffix: str = DEFAULT_ENDPOINT_SUFFIX

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", Method.parse(self.method))
        for name in ("account", "access_key", "container_name", "endpoint_suffix"):
            if not getattr(self, name):
                raise InvalidSettingsError(f"Setting '{name}' must not be empty")
        if self.timeout is not None and self.timeout <= 0:
            raise InvalidSettingsError(
                f"timeout must be a positive number of seconds, got {self.timeout}"
            )

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "ConnectionSettings":
        """
        Build settings from a host key/value map.
        Numeric values may arrive as strings and are coerced.
        """
        missing = [key for key in REQUIRED_KEYS if not values.get(key)]
        if missing:
            raise InvalidSettingsError(
                f"Missing required settings: {', '.join(missing)}"
            )

        tuning = UploadTuning(
            block_size=_coerce_int(values, "block_size", DEFAULT_BLOCK_SIZE),
            max_concurrency=_coerce_int(
                values, "max_concurrency", DEFAULT_MAX_CONCURRENCY
            ),
        )
        return cls(
            account=str(values["azure_storage_account"]),
            access_key=str(values["azure_storage_access_key"]),
            container_name=str(values["container_name"]),
            method=Method.parse(str(values["method"])),
            upload_tuning=tuning,
            timeout=_coerce_float(values, "timeout"),
            endpoint_suffix=str(
                values.get("endpoint_suffix") or DEFAULT_ENDPOINT_SUFFIX
            ),
        )

    @classmethod
    def from_env(cls, env_file: str | os.PathLike | None = None) -> "ConnectionSettings":
        """Build settings from environment variables, loading a .env file first."""
        load_dotenv(env_file)
        values = {
            key: os.environ[var] for key, var in ENV_VARS.items() if os.environ.get(var)
        }
        return cls.from_mapping(values)


def _coerce_int(values: Mapping[str, Any], key: str, default: int) -> int:
    raw = values.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise InvalidSettingsError(f"Setting '{key}' must be an integer, got {raw!r}")


def _coerce_float(values: Mapping[str, Any], key: str) -> float | None:
    raw = values.get(key)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise InvalidSettingsError(f"Setting '{key}' must be a number, got {raw!r}")
