"""Projections onto convex sets and projected gradient descent."""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence

import torch

Projection = Callable[[torch.Tensor], torch.Tensor]


def project_l2_ball(x: torch.Tensor, radius: float = 1.0, center: Optional[torch.Tensor] = None) -> torch.Tensor:
    """Nearest point of the ball ``{z : ||z - center|| <= radius}``."""
    if radius <= 0:
        raise ValueError("radius must be positive")
    x = torch.as_tensor(x, dtype=torch.get_default_dtype())
    center = torch.zeros_like(x) if center is None else torch.as_tensor(center, dtype=x.dtype)
    offset = x - center
    norm = torch.linalg.vector_norm(offset)
    if norm <= radius:
        return x.clone()
    return center + offset * (radius / norm)


def project_box(x: torch.Tensor, low, high) -> torch.Tensor:
    x = torch.as_tensor(x, dtype=torch.get_default_dtype())
    low_t = torch.as_tensor(low, dtype=x.dtype)
    high_t = torch.as_tensor(high, dtype=x.dtype)
    if bool((low_t > high_t).any()):
        raise ValueError("box bounds require low <= high")
    return torch.maximum(torch.minimum(x, high_t), low_t)


def project_simplex(x: torch.Tensor) -> torch.Tensor:
    """Euclidean projection of a vector onto ``{p : p >= 0, sum(p) = 1}``."""
    x = torch.as_tensor(x, dtype=torch.get_default_dtype()).reshape(-1)
    if x.numel() == 0:
        raise ValueError("cannot project an empty vector")
    u, _ = torch.sort(x, descending=True)
    cssv = torch.cumsum(u, dim=0) - 1.0
    ind = torch.arange(1, x.numel() + 1, dtype=x.dtype)
    cond = u - cssv / ind > 0
    rho = int(torch.nonzero(cond).max())
    theta = cssv[rho] / (rho + 1)
    return torch.clamp(x - theta, min=0.0)


def clip_gradient_norm(grads: Sequence[torch.Tensor], theta: float) -> float:
    """Project the concatenated gradient onto the ball of radius ``theta`` in place.

    Returns the norm before clipping.
    """
    if theta <= 0:
        raise ValueError("theta must be positive")
    if not grads:
        return 0.0
    norm = torch.sqrt(sum(torch.sum(g ** 2) for g in grads))
    total = float(norm)
    if total > theta:
        for g in grads:
            g.mul_(theta / total)
    return total


def projected_gradient_descent(
    grad_fn: Callable[[torch.Tensor], torch.Tensor],
    x0,
    projection: Projection,
    lr: float = 0.1,
    num_steps: int = 50,
) -> List[torch.Tensor]:
    """Iterates ``x <- P(x - lr * grad(x))``, starting from ``P(x0)``."""
    x = projection(torch.as_tensor(x0, dtype=torch.get_default_dtype()))
    trace = [x]
    for _ in range(num_steps):
        x = projection(x - lr * grad_fn(x))
        trace.append(x)
    return trace


__all__ = [
    "project_l2_ball",
    "project_box",
    "project_simplex",
    "clip_gradient_norm",
    "projected_gradient_descent",
]
