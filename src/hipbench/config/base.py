"""
Base Configuration Classes.

This module provides base configuration classes with common fields to reduce
duplication across the codebase. All specific configs should inherit from these.

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

from dataclasses import MISSING, asdict, dataclass, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar
import json

import torch

from hipbench.errors import ConfigurationError

T = TypeVar("T", bound="SerializableConfig")


@dataclass
class BaseConfig:
    """Base configuration with common fields for all components.

    This provides standard fields that appear in almost every config:
    - device: Hardware device (cpu/cuda)
    - dtype: Tensor data type
    - seed: Random seed for reproducibility
    """

    device: str = "cpu"
    """Device to run on: 'cpu', 'cuda', 'cuda:0', etc."""

    dtype: str = "float32"
    """Data type for tensors: 'float32', 'float64'"""

    seed: Optional[int] = None
    """Random seed for reproducibility. None = no seeding."""

    def get_torch_device(self) -> torch.device:
        """Get PyTorch device object."""
        return torch.device(self.device)

    def get_torch_dtype(self) -> torch.dtype:
        """Get PyTorch dtype object."""
        dtype_map = {
            "float32": torch.float32,
            "float64": torch.float64,
        }
        if self.dtype not in dtype_map:
            raise ConfigurationError(
                f"Unknown dtype '{self.dtype}'. "
                f"Choose from: {list(dtype_map.keys())}"
            )
        return dtype_map[self.dtype]


class SerializableConfig:
    """Mixin giving nested dataclass configs a JSON round-trip.

    Nested dataclass fields are serialized recursively and rebuilt from the
    field's declared type on load, so ``cls.from_dict(cfg.to_dict()) == cfg``.
    Tuples are stored as JSON lists and converted back.
    """

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)  # type: ignore[call-overload]

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def save(self, path: str | Path) -> None:
        """Save configuration to JSON file."""
        path = Path(path)
        path.write_text(self.to_json())

    @classmethod
    def load(cls: Type[T], path: str | Path) -> T:
        """Load configuration from JSON file."""
        path = Path(path)
        data = json.loads(path.read_text())
        return cls.from_dict(data)  # type: ignore[attr-defined]

    @classmethod
    def from_dict(cls, d: Dict[str, Any]):
        """Create from dictionary. Unknown keys raise ConfigurationError."""
        known = {f.name: f for f in fields(cls)}  # type: ignore[arg-type]
        kwargs: Dict[str, Any] = {}
        for key, value in d.items():
            if key not in known:
                raise ConfigurationError(f"{cls.__name__}: unknown field '{key}'")
            field_ = known[key]
            if field_.default_factory is not MISSING:
                default = field_.default_factory()
            else:
                default = field_.default
            if is_dataclass(default) and isinstance(value, dict):
                value = type(default).from_dict(value)  # type: ignore[attr-defined]
            elif isinstance(default, tuple) and isinstance(value, list):
                value = tuple(value)
            kwargs[key] = value
        return cls(**kwargs)
