"""Tensor helpers shared by the chapter notebooks.

The plotting snippets in the optimization chapter follow one pattern: build a
range of inputs, map a scalar function over it, and hand both arrays to the
plotting helpers. ``map_scalar`` is the mapping step; it accepts tensors,
NumPy arrays or plain sequences and always returns a tensor of the same shape.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional, Union

import numpy as np
import torch

logger = logging.getLogger(__name__)

ArrayLike = Union[torch.Tensor, np.ndarray, Iterable[float]]


class DomainError(ValueError):
    """A scalar function failed for one element of the mapped input."""

    def __init__(self, index: int, value: float, cause: BaseException):
        self.index = index
        self.value = value
        self.cause = cause
        super().__init__(
            f"function undefined at index {index} (x={value!r}): "
            f"{type(cause).__name__}: {cause}"
        )


def as_float_tensor(values: ArrayLike) -> torch.Tensor:
    if isinstance(values, torch.Tensor):
        return values.detach().to(device="cpu", dtype=torch.float64)
    if isinstance(values, np.ndarray):
        return torch.from_numpy(values.astype(np.float64, copy=False))
    if not isinstance(values, (list, tuple)):
        values = list(values)
    return torch.as_tensor(values, dtype=torch.float64)


def map_scalar(
    fn: Callable[[float], Any],
    values: ArrayLike,
    *,
    dtype: Optional[torch.dtype] = None,
) -> torch.Tensor:
    """Apply ``fn`` to every element of ``values``.

    Args:
        fn: Scalar function called with a Python float.
        values: Tensor, array or sequence of numbers (any shape).
        dtype: Result dtype, defaults to ``torch.get_default_dtype()``.

    Returns:
        Tensor with the same shape as ``values``.

    Raises:
        DomainError: ``fn`` raised ``ValueError``, ``OverflowError`` or
            ``ZeroDivisionError`` for some element (e.g. ``math.log(0.0)`` or
            ``math.exp(1000.0)``). No partial result is returned.
    """
    source = as_float_tensor(values)
    flat = source.reshape(-1).tolist()
    results = []
    for index, value in enumerate(flat):
        try:
            results.append(float(fn(value)))
        except (ValueError, OverflowError, ZeroDivisionError) as exc:
            logger.debug("map_scalar failed at index %d (x=%r): %s", index, value, exc)
            raise DomainError(index, value, exc) from exc
    out_dtype = dtype or torch.get_default_dtype()
    return torch.tensor(results, dtype=out_dtype).reshape(source.shape)


def arange(
    start: float,
    stop: Optional[float] = None,
    step: float = 1.0,
    *,
    dtype: Optional[torch.dtype] = None,
) -> torch.Tensor:
    """Floating point ``torch.arange``; ``arange(3)`` is ``[0., 1., 2.]``."""
    if step == 0:
        raise ValueError("step must be non-zero")
    if stop is None:
        start, stop = 0.0, start
    return torch.arange(start, stop, step, dtype=dtype or torch.get_default_dtype())


def linspace(start: float, stop: float, num: int, *, dtype: Optional[torch.dtype] = None) -> torch.Tensor:
    if num < 1:
        raise ValueError(f"num must be at least 1, got {num}")
    return torch.linspace(start, stop, num, dtype=dtype or torch.get_default_dtype())


def to_numpy(values: ArrayLike) -> np.ndarray:
    """Convert tensors (including ones requiring grad) to NumPy for matplotlib."""
    if isinstance(values, torch.Tensor):
        return values.detach().cpu().numpy()
    return np.asarray(values)


__all__ = ["DomainError", "as_float_tensor", "map_scalar", "arange", "linspace", "to_numpy"]
