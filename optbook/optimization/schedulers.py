"""Learning-rate schedules. Each scheduler is called with the update count."""

from __future__ import annotations

import math
from typing import Sequence

import torch


class SquareRootScheduler:
    def __init__(self, lr: float = 0.1):
        self.lr = lr

    def __call__(self, num_update: int) -> float:
        return self.lr * pow(num_update + 1.0, -0.5)


class FactorScheduler:
    """Multiply the rate by ``factor`` on every call, never going below ``stop_factor_lr``."""

    def __init__(self, factor: float = 1.0, stop_factor_lr: float = 1e-7, base_lr: float = 0.1):
        self.factor = factor
        self.stop_factor_lr = stop_factor_lr
        self.base_lr = base_lr

    def __call__(self, num_update: int) -> float:
        self.base_lr = max(self.stop_factor_lr, self.base_lr * self.factor)
        return self.base_lr


class MultiFactorScheduler:
    """Piecewise constant: the rate is multiplied by ``factor`` at each milestone."""

    def __init__(self, base_lr: float, milestones: Sequence[int], factor: float = 0.5):
        if list(milestones) != sorted(milestones):
            raise ValueError("milestones must be increasing")
        self.base_lr = base_lr
        self.milestones = list(milestones)
        self.factor = factor

    def __call__(self, num_update: int) -> float:
        passed = sum(1 for m in self.milestones if num_update >= m)
        return self.base_lr * self.factor ** passed


class CosineScheduler:
    """Linear warmup followed by half-cosine decay to ``final_lr``."""

    def __init__(
        self,
        max_update: int,
        base_lr: float = 0.01,
        final_lr: float = 0.0,
        warmup_steps: int = 0,
        warmup_begin_lr: float = 0.0,
    ):
        if warmup_steps >= max_update:
            raise ValueError("warmup_steps must be smaller than max_update")
        self.base_lr_orig = base_lr
        self.max_update = max_update
        self.final_lr = final_lr
        self.warmup_steps = warmup_steps
        self.warmup_begin_lr = warmup_begin_lr
        self.max_steps = self.max_update - self.warmup_steps

    def get_warmup_lr(self, num_update: int) -> float:
        increase = (self.base_lr_orig - self.warmup_begin_lr) * float(num_update) / float(self.warmup_steps)
        return self.warmup_begin_lr + increase

    def __call__(self, num_update: int) -> float:
        if num_update < self.warmup_steps:
            return self.get_warmup_lr(num_update)
        if num_update <= self.max_update:
            progress = (num_update - self.warmup_steps) / self.max_steps
            return self.final_lr + (self.base_lr_orig - self.final_lr) * (1 + math.cos(math.pi * progress)) / 2
        return self.final_lr


def apply_lr(optimizer: torch.optim.Optimizer, lr: float) -> None:
    for param_group in optimizer.param_groups:
        param_group["lr"] = lr


__all__ = [
    "SquareRootScheduler",
    "FactorScheduler",
    "MultiFactorScheduler",
    "CosineScheduler",
    "apply_lr",
]
