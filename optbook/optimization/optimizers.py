"""From-scratch optimizers used in the optimization chapter.

Every optimizer is a pair ``(init_states, update)``. ``update(params, states,
hyperparams)`` reads ``p.grad`` for each parameter, updates ``p`` in place
and zeroes the gradient. State tensors live in ``states`` so notebooks can
inspect them between steps.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Sequence, Tuple

import torch
from torch.utils import data

logger = logging.getLogger(__name__)

Params = Sequence[torch.Tensor]
Hyperparams = Dict[str, float]


def _hp(hyperparams: Hyperparams, key: str) -> float:
    try:
        return hyperparams[key]
    except KeyError:
        raise KeyError(f"missing hyperparameter {key!r}") from None


def init_sgd_states(params: Params) -> List[None]:
    return [None for _ in params]


def sgd(params: Params, states, hyperparams: Hyperparams) -> None:
    lr = _hp(hyperparams, "lr")
    for p in params:
        with torch.no_grad():
            p -= lr * p.grad
        p.grad.data.zero_()


def init_momentum_states(params: Params) -> List[torch.Tensor]:
    return [torch.zeros_like(p) for p in params]


def sgd_momentum(params: Params, states, hyperparams: Hyperparams) -> None:
    lr, momentum = _hp(hyperparams, "lr"), _hp(hyperparams, "momentum")
    for p, v in zip(params, states):
        with torch.no_grad():
            v[:] = momentum * v + p.grad
            p[:] -= lr * v
        p.grad.data.zero_()


def init_adagrad_states(params: Params) -> List[torch.Tensor]:
    return [torch.zeros_like(p) for p in params]


def adagrad(params: Params, states, hyperparams: Hyperparams) -> None:
    eps = 1e-6
    lr = _hp(hyperparams, "lr")
    for p, s in zip(params, states):
        with torch.no_grad():
            s[:] += torch.square(p.grad)
            p[:] -= lr * p.grad / torch.sqrt(s + eps)
        p.grad.data.zero_()


def init_rmsprop_states(params: Params) -> List[torch.Tensor]:
    return [torch.zeros_like(p) for p in params]


def rmsprop(params: Params, states, hyperparams: Hyperparams) -> None:
    gamma, eps = _hp(hyperparams, "gamma"), 1e-6
    lr = _hp(hyperparams, "lr")
    for p, s in zip(params, states):
        with torch.no_grad():
            s[:] = gamma * s + (1 - gamma) * torch.square(p.grad)
            p[:] -= lr * p.grad / torch.sqrt(s + eps)
        p.grad.data.zero_()


def init_adadelta_states(params: Params) -> List[Tuple[torch.Tensor, torch.Tensor]]:
    return [(torch.zeros_like(p), torch.zeros_like(p)) for p in params]


def adadelta(params: Params, states, hyperparams: Hyperparams) -> None:
    rho, eps = _hp(hyperparams, "rho"), 1e-5
    for p, (s, delta) in zip(params, states):
        with torch.no_grad():
            s[:] = rho * s + (1 - rho) * torch.square(p.grad)
            g = (torch.sqrt(delta + eps) / torch.sqrt(s + eps)) * p.grad
            p[:] -= g
            delta[:] = rho * delta + (1 - rho) * g * g
        p.grad.data.zero_()


def init_adam_states(params: Params) -> List[Tuple[torch.Tensor, torch.Tensor]]:
    return [(torch.zeros_like(p), torch.zeros_like(p)) for p in params]


def adam(params: Params, states, hyperparams: Hyperparams) -> None:
    """Adam with bias correction; ``hyperparams['t']`` counts steps and is incremented."""
    beta1, beta2, eps = 0.9, 0.999, 1e-6
    lr, t = _hp(hyperparams, "lr"), _hp(hyperparams, "t")
    for p, (v, s) in zip(params, states):
        with torch.no_grad():
            v[:] = beta1 * v + (1 - beta1) * p.grad
            s[:] = beta2 * s + (1 - beta2) * torch.square(p.grad)
            v_bias_corr = v / (1 - beta1 ** t)
            s_bias_corr = s / (1 - beta2 ** t)
            p[:] -= lr * v_bias_corr / (torch.sqrt(s_bias_corr) + eps)
        p.grad.data.zero_()
    hyperparams["t"] = t + 1


OPTIMIZERS: Dict[str, Tuple[Callable, Callable]] = {
    "sgd": (init_sgd_states, sgd),
    "momentum": (init_momentum_states, sgd_momentum),
    "adagrad": (init_adagrad_states, adagrad),
    "rmsprop": (init_rmsprop_states, rmsprop),
    "adadelta": (init_adadelta_states, adadelta),
    "adam": (init_adam_states, adam),
}


def synthetic_data(w: torch.Tensor, b: float, num_examples: int, *, seed: int = 0) -> Tuple[torch.Tensor, torch.Tensor]:
    """``y = Xw + b + noise`` with standard normal features."""
    generator = torch.Generator().manual_seed(seed)
    X = torch.normal(0, 1, (num_examples, len(w)), generator=generator)
    y = torch.matmul(X, w) + b
    y += torch.normal(0, 0.01, y.shape, generator=generator)
    return X, y.reshape((-1, 1))


def load_array(data_arrays: Tuple[torch.Tensor, ...], batch_size: int, is_train: bool = True) -> data.DataLoader:
    dataset = data.TensorDataset(*data_arrays)
    return data.DataLoader(dataset, batch_size, shuffle=is_train)


def linreg(X: torch.Tensor, w: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
    return torch.matmul(X, w) + b


def squared_loss(y_hat: torch.Tensor, y: torch.Tensor) -> torch.Tensor:
    return (y_hat - y.reshape(y_hat.shape)) ** 2 / 2


@dataclass
class TrainResult:
    w: torch.Tensor
    b: torch.Tensor
    losses: List[float] = field(default_factory=list)

    @property
    def final_loss(self) -> float:
        return self.losses[-1] if self.losses else float("nan")


def evaluate_loss(net: Callable, data_iter: Iterator, loss: Callable) -> float:
    total, count = 0.0, 0
    with torch.no_grad():
        for X, y in data_iter:
            out = loss(net(X), y)
            total += float(out.sum())
            count += out.numel()
    return total / max(count, 1)


def train_linreg(
    trainer_name: str,
    hyperparams: Hyperparams,
    data_iter: data.DataLoader,
    feature_dim: int,
    num_epochs: int = 2,
) -> TrainResult:
    """Train linear regression with one of :data:`OPTIMIZERS`.

    The mean loss over ``data_iter`` is recorded after every epoch.
    """
    try:
        init_states, trainer_fn = OPTIMIZERS[trainer_name]
    except KeyError:
        raise KeyError(f"unknown optimizer {trainer_name!r}; choose from {sorted(OPTIMIZERS)}") from None
    w = torch.normal(mean=0.0, std=0.01, size=(feature_dim, 1), requires_grad=True)
    b = torch.zeros((1,), requires_grad=True)
    states = init_states([w, b])
    net = lambda X: linreg(X, w, b)  # noqa: E731
    result = TrainResult(w=w, b=b)
    for epoch in range(num_epochs):
        for X, y in data_iter:
            l = squared_loss(net(X), y).mean()
            l.backward()
            trainer_fn([w, b], states, hyperparams)
        result.losses.append(evaluate_loss(net, data_iter, squared_loss))
        logger.debug("%s epoch %d, loss %.6f", trainer_name, epoch + 1, result.losses[-1])
    logger.info("%s: final loss %.6f after %d epochs", trainer_name, result.final_loss, num_epochs)
    return result


__all__ = [
    "OPTIMIZERS",
    "sgd",
    "sgd_momentum",
    "adagrad",
    "rmsprop",
    "adadelta",
    "adam",
    "init_sgd_states",
    "init_momentum_states",
    "init_adagrad_states",
    "init_rmsprop_states",
    "init_adadelta_states",
    "init_adam_states",
    "synthetic_data",
    "load_array",
    "linreg",
    "squared_loss",
    "TrainResult",
    "evaluate_loss",
    "train_linreg",
]
