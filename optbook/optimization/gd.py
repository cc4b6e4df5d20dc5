"""Gradient descent and Newton's method on toy objectives."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

import torch

logger = logging.getLogger(__name__)

State2D = Tuple[float, float, float, float]
# (x1, x2, s1, s2[, f_grad]) -> (x1, x2, s1, s2)
Trainer2D = Callable[..., State2D]


def f_1d(x: float) -> float:
    return x ** 2


def f_1d_grad(x: float) -> float:
    return 2 * x


def f_2d(x1, x2):
    return x1 ** 2 + 2 * x2 ** 2


def f_2d_grad(x1: float, x2: float) -> Tuple[float, float]:
    return 2 * x1, 4 * x2


def gd(eta: float, f_grad: Callable[[float], float], x0: float = 10.0, num_steps: int = 10) -> List[float]:
    """1-d gradient descent; returns ``num_steps + 1`` iterates including ``x0``."""
    x = float(x0)
    results = [x]
    for _ in range(num_steps):
        x -= eta * f_grad(x)
        results.append(float(x))
    logger.debug("gd: eta=%s, final x=%.6f", eta, x)
    return results


def newton(
    eta: float,
    f_grad: Callable[[float], float],
    f_hess: Callable[[float], float],
    x0: float = 10.0,
    num_steps: int = 10,
) -> List[float]:
    x = float(x0)
    results = [x]
    for step in range(num_steps):
        try:
            x -= eta * f_grad(x) / f_hess(x)
        except ZeroDivisionError as exc:
            raise ValueError(f"Hessian vanished at step {step} (x={x!r})") from exc
        results.append(float(x))
    return results


def gd_2d(eta: float = 0.1, f_grad: Optional[Callable] = None) -> Trainer2D:
    """Build a 2-d gradient descent trainer for :func:`train_2d`.

    A gradient passed to the step (``train_2d(..., f_grad=...)``) overrides ``f_grad``.
    """
    grad = f_grad or f_2d_grad

    def step(x1: float, x2: float, s1: float, s2: float, f_grad: Optional[Callable] = None) -> State2D:
        g1, g2 = (f_grad or grad)(x1, x2)
        return x1 - eta * g1, x2 - eta * g2, 0.0, 0.0

    return step


def sgd_2d(eta: float = 0.1, f_grad: Optional[Callable] = None, noise: float = 1.0, seed: int = 0) -> Trainer2D:
    """Gradient descent with Gaussian gradient noise, as a stand-in for minibatch noise."""
    grad = f_grad or f_2d_grad
    generator = torch.Generator().manual_seed(seed)

    def step(x1: float, x2: float, s1: float, s2: float, f_grad: Optional[Callable] = None) -> State2D:
        g1, g2 = (f_grad or grad)(x1, x2)
        n1, n2 = (noise * torch.randn(2, generator=generator)).tolist()
        return x1 - eta * (g1 + n1), x2 - eta * (g2 + n2), 0.0, 0.0

    return step


def train_2d(trainer: Trainer2D, steps: int = 20, f_grad: Optional[Callable] = None) -> List[Tuple[float, float]]:
    """Run ``trainer`` from ``(-5, -2)``; returns ``steps + 1`` points.

    With ``f_grad`` every step is called as ``trainer(x1, x2, s1, s2, f_grad)``.
    """
    x1, x2, s1, s2 = -5.0, -2.0, 0.0, 0.0
    results = [(x1, x2)]
    for _ in range(steps):
        if f_grad:
            x1, x2, s1, s2 = trainer(x1, x2, s1, s2, f_grad)
        else:
            x1, x2, s1, s2 = trainer(x1, x2, s1, s2)
        results.append((float(x1), float(x2)))
    logger.info("epoch %d, x1: %f, x2: %f", steps, x1, x2)
    return results


__all__ = [
    "f_1d",
    "f_1d_grad",
    "f_2d",
    "f_2d_grad",
    "gd",
    "newton",
    "gd_2d",
    "sgd_2d",
    "train_2d",
]
