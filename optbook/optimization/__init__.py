"""Algorithms from the optimization chapter."""

from optbook.optimization import convexity, duality, gd, optimizers, projections, schedulers

__all__ = ["convexity", "duality", "gd", "optimizers", "projections", "schedulers"]
