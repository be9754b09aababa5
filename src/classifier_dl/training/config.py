# classifier_dl/training/config.py
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Optional, Sequence, Union


class Verbose(IntEnum):
    """Training verbosity. Lower values print more."""
    ALL = 0
    PER_STEP = 1
    EPOCHS = 2
    TRAINING_STAT = 3
    SILENT = 4

    @classmethod
    def parse(cls, value: Union["Verbose", int, str]) -> "Verbose":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            name = value.strip().upper().replace("-", "_")
            if name == "DEBUG":
                return cls.ALL
            try:
                return cls[name]
            except KeyError:
                raise ValueError(f"unknown verbosity level: {value!r}") from None
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"unknown verbosity level: {value!r}")
        return cls(value)


def _default_logs_path() -> Path:
    return Path.home() / "annotator_logs"


@dataclass(frozen=True)
class ClassifierDLConfig:
    lr: float = 5e-3
    batch_size: int = 64
    dropout: float = 0.5
    max_epochs: int = 30
    validation_split: float = 0.0
    verbose: Verbose = Verbose.SILENT
    random_seed: Optional[int] = None

    # Per-run log file under output_logs_path
    enable_output_logs: bool = False
    output_logs_path: Path = field(default_factory=_default_logs_path)

    # Serialized tf.compat.v1.ConfigProto, forwarded to the trainer as-is
    config_proto_bytes: Optional[bytes] = None

    def __post_init__(self):
        if not self.lr > 0:
            raise ValueError(f"lr must be positive, got {self.lr}")
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if not 0.0 <= self.dropout < 1.0:
            raise ValueError(f"dropout must be in [0, 1), got {self.dropout}")
        if self.max_epochs <= 0:
            raise ValueError(f"max_epochs must be positive, got {self.max_epochs}")
        if not 0.0 <= self.validation_split < 1.0:
            raise ValueError(
                f"validation_split must be in [0, 1), got {self.validation_split}"
            )
        if self.random_seed is not None and self.random_seed < 0:
            raise ValueError(f"random_seed must be non-negative, got {self.random_seed}")

        object.__setattr__(self, "verbose", Verbose.parse(self.verbose))
        object.__setattr__(self, "output_logs_path", Path(self.output_logs_path).expanduser())
        if self.config_proto_bytes is not None:
            object.__setattr__(
                self, "config_proto_bytes", _to_bytes(self.config_proto_bytes)
            )

    def with_options(self, **changes) -> "ClassifierDLConfig":
        return dataclasses.replace(self, **changes)


def _to_bytes(raw: Union[bytes, bytearray, Sequence[int]]) -> bytes:
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw)
    # ints from list(proto.SerializeToString()) may come signed (JVM style)
    try:
        return bytes(b & 0xFF for b in raw)
    except TypeError:
        raise ValueError("config_proto_bytes must be bytes or a sequence of ints") from None
