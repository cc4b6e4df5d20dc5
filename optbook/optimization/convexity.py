"""Executable versions of the convexity section.

Convexity is checked numerically on sample points: a function is reported
convex on a sample when every chord between two sample points lies on or
above the function, and Jensen's inequality is evaluated for discrete
distributions.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

import torch

from optbook.tensor_utils import ArrayLike, as_float_tensor, linspace, map_scalar

ScalarFn = Callable[[float], float]


def _f(x: float) -> float:
    return 0.5 * x ** 2


def _g(x: float) -> float:
    return math.cos(math.pi * x)


def _h(x: float) -> float:
    return math.exp(0.5 * x)


# Convex, nonconvex, convex.
DEMO_FUNCTIONS: Dict[str, ScalarFn] = {"f": _f, "g": _g, "h": _h}


@dataclass(frozen=True)
class ConvexityViolation:
    x: float
    y: float
    lam: float
    gap: float


def convex_combination(x, y, lam: float):
    if not 0.0 <= lam <= 1.0:
        raise ValueError(f"lam must lie in [0, 1], got {lam}")
    return lam * x + (1.0 - lam) * y


def _lambdas(num_lambdas: int) -> List[float]:
    if num_lambdas < 2:
        raise ValueError("num_lambdas must be at least 2")
    return linspace(0.0, 1.0, num_lambdas, dtype=torch.float64).tolist()


def convexity_violations(
    f: ScalarFn,
    xs: ArrayLike,
    num_lambdas: int = 11,
    atol: float = 1e-6,
) -> List[ConvexityViolation]:
    """Chord checks that fail: ``f(lam x + (1-lam) y) > lam f(x) + (1-lam) f(y) + atol``."""
    points = as_float_tensor(xs).reshape(-1).tolist()
    if len(points) < 2:
        raise ValueError("need at least two sample points")
    values = map_scalar(f, points, dtype=torch.float64).tolist()
    lambdas = _lambdas(num_lambdas)
    violations = []
    for i, (x, fx) in enumerate(zip(points, values)):
        for y, fy in zip(points[i + 1:], values[i + 1:]):
            chord = [convex_combination(x, y, lam) for lam in lambdas]
            for lam, lhs in zip(lambdas, map_scalar(f, chord, dtype=torch.float64).tolist()):
                rhs = lam * fx + (1.0 - lam) * fy
                if lhs - rhs > atol:
                    violations.append(ConvexityViolation(x, y, lam, lhs - rhs))
    return violations


def is_convex_on(f: ScalarFn, xs: ArrayLike, num_lambdas: int = 11, atol: float = 1e-6) -> bool:
    return not convexity_violations(f, xs, num_lambdas=num_lambdas, atol=atol)


def _normalized_weights(weights: Optional[ArrayLike], n: int) -> torch.Tensor:
    if weights is None:
        return torch.full((n,), 1.0 / n, dtype=torch.float64)
    w = as_float_tensor(weights).reshape(-1)
    if w.numel() != n:
        raise ValueError(f"expected {n} weights, got {w.numel()}")
    if bool((w < 0).any()):
        raise ValueError("weights must be non-negative")
    total = float(w.sum())
    if total <= 0.0:
        raise ValueError("weights must not all be zero")
    return w / total


def jensen_gap(f: ScalarFn, samples: ArrayLike, weights: Optional[ArrayLike] = None) -> float:
    """``E[f(X)] - f(E[X])`` for the discrete distribution over ``samples``.

    Jensen's inequality says the gap is non-negative when ``f`` is convex.
    """
    xs = as_float_tensor(samples).reshape(-1)
    if xs.numel() == 0:
        raise ValueError("samples must not be empty")
    w = _normalized_weights(weights, xs.numel())
    expected_f = float((w * map_scalar(f, xs, dtype=torch.float64)).sum())
    mean = float((w * xs).sum())
    return expected_f - float(map_scalar(f, [mean], dtype=torch.float64)[0])


def is_convex_set(
    points: Sequence[Sequence[float]],
    contains: Callable[[torch.Tensor], bool],
    num_lambdas: int = 11,
) -> bool:
    """True when every segment between two member points stays in the set."""
    members = [as_float_tensor(p) for p in points]
    for p in members:
        if not contains(p):
            raise ValueError(f"sample point {p.tolist()} is not in the set")
    lambdas = _lambdas(num_lambdas)
    for i, a in enumerate(members):
        for b in members[i + 1:]:
            if not all(contains(convex_combination(a, b, lam)) for lam in lambdas):
                return False
    return True


def local_minima(values: ArrayLike) -> List[int]:
    """Indices of strict interior local minima of a sampled curve."""
    ys = as_float_tensor(values).reshape(-1).tolist()
    return [i for i in range(1, len(ys) - 1) if ys[i] < ys[i - 1] and ys[i] < ys[i + 1]]


def second_derivative(f: ScalarFn, x: float, h: float = 1e-3) -> float:
    if h <= 0:
        raise ValueError("h must be positive")
    return (f(x + h) - 2.0 * f(x) + f(x - h)) / (h * h)


__all__ = [
    "DEMO_FUNCTIONS",
    "ConvexityViolation",
    "convex_combination",
    "convexity_violations",
    "is_convex_on",
    "jensen_gap",
    "is_convex_set",
    "local_minima",
    "second_derivative",
]
