"""Constrained optimization: Lagrangians, penalties and KKT conditions.

Constraints are callables ``c(x)`` with the feasible set ``c(x) <= 0``.
Objectives and constraints take and return tensors so gradients come from
``torch.autograd``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Sequence

import torch

logger = logging.getLogger(__name__)

Objective = Callable[[torch.Tensor], torch.Tensor]
Constraint = Callable[[torch.Tensor], torch.Tensor]


@dataclass
class PenaltyResult:
    x: torch.Tensor
    objective_trace: List[float] = field(default_factory=list)
    max_violation: float = 0.0


def _check_alphas(constraints: Sequence[Constraint], alphas: Sequence[float]) -> torch.Tensor:
    alphas_t = torch.as_tensor(alphas, dtype=torch.get_default_dtype()).reshape(-1)
    if alphas_t.numel() != len(constraints):
        raise ValueError(f"expected {len(constraints)} multipliers, got {alphas_t.numel()}")
    if bool((alphas_t < 0).any()):
        raise ValueError("Lagrange multipliers must be non-negative")
    return alphas_t


def lagrangian(
    f: Objective,
    constraints: Sequence[Constraint],
    x: torch.Tensor,
    alphas: Sequence[float],
) -> torch.Tensor:
    """``L(x, alpha) = f(x) + sum_i alpha_i c_i(x)``."""
    alphas_t = _check_alphas(constraints, alphas)
    value = f(x)
    for alpha, c in zip(alphas_t, constraints):
        value = value + alpha * c(x)
    return value


def penalty_objective(f: Objective, constraints: Sequence[Constraint], weight: float) -> Objective:
    """Quadratic penalty: ``f(x) + weight * sum_i max(c_i(x), 0) ** 2``."""
    if weight < 0:
        raise ValueError("penalty weight must be non-negative")

    def penalized(x: torch.Tensor) -> torch.Tensor:
        value = f(x)
        for c in constraints:
            value = value + weight * torch.clamp(c(x), min=0.0) ** 2
        return value

    return penalized


def max_violation(constraints: Sequence[Constraint], x: torch.Tensor) -> float:
    if not constraints:
        return 0.0
    with torch.no_grad():
        return max(max(float(c(x)), 0.0) for c in constraints)


def is_feasible(constraints: Sequence[Constraint], x: torch.Tensor, atol: float = 1e-6) -> bool:
    return max_violation(constraints, x) <= atol


def minimize_penalized(
    f: Objective,
    constraints: Sequence[Constraint],
    x0,
    *,
    weight: float = 10.0,
    lr: float = 0.01,
    num_steps: int = 1000,
) -> PenaltyResult:
    """Gradient descent on the penalized objective starting from ``x0``."""
    if num_steps <= 0:
        raise ValueError("num_steps must be positive")
    objective = penalty_objective(f, constraints, weight)
    x = torch.as_tensor(x0, dtype=torch.get_default_dtype()).clone().requires_grad_(True)
    result = PenaltyResult(x=x)
    for _ in range(num_steps):
        value = objective(x)
        (grad,) = torch.autograd.grad(value, x)
        with torch.no_grad():
            x -= lr * grad
        result.objective_trace.append(float(value))
    result.x = x.detach()
    result.max_violation = max_violation(constraints, result.x)
    logger.debug(
        "penalty method finished: f=%.6f, max violation=%.3e",
        float(f(result.x)),
        result.max_violation,
    )
    return result


def kkt_residual(
    f: Objective,
    constraints: Sequence[Constraint],
    x,
    alphas: Sequence[float],
) -> float:
    """Stationarity norm of the Lagrangian plus complementary slackness and primal violations.

    Zero (up to numerical error) at a KKT point.
    """
    x = torch.as_tensor(x, dtype=torch.get_default_dtype()).clone().requires_grad_(True)
    value = lagrangian(f, constraints, x, alphas)
    (grad,) = torch.autograd.grad(value, x)
    alphas_t = _check_alphas(constraints, alphas)
    with torch.no_grad():
        slackness = sum(abs(float(a * c(x))) for a, c in zip(alphas_t, constraints))
        primal = sum(max(float(c(x)), 0.0) for c in constraints)
    return float(torch.linalg.vector_norm(grad)) + slackness + primal


def l2_penalty(w: torch.Tensor) -> torch.Tensor:
    """Weight decay term ``||w||^2 / 2``."""
    return torch.sum(w.pow(2)) / 2


__all__ = [
    "PenaltyResult",
    "lagrangian",
    "penalty_objective",
    "max_violation",
    "is_feasible",
    "minimize_penalized",
    "kkt_residual",
    "l2_penalty",
]
