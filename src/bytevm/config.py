"""Runtime configuration for the ByteVM engine."""

from dataclasses import dataclass
from typing import Optional

DEFAULT_STACK_CAPACITY = 1024


@dataclass(frozen=True)
class VMConfig:
    """Configuration for a single machine run."""
    stack_capacity: int = DEFAULT_STACK_CAPACITY
    max_steps: Optional[int] = None   # None runs until HALT or a fault
    trace: bool = False               # Log every executed instruction at DEBUG

    def __post_init__(self):
        if self.stack_capacity < 1:
            raise ValueError(f"stack_capacity must be positive, got {self.stack_capacity}")
        if self.max_steps is not None and self.max_steps < 0:
            raise ValueError(f"max_steps must be non-negative, got {self.max_steps}")


DEFAULT_CONFIG = VMConfig()
