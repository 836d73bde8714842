"""Adapters that expose torch computations as simplex objectives."""

from __future__ import annotations

from typing import Callable, Optional

import numpy as np
import torch
from torch.nn.utils import parameters_to_vector, vector_to_parameters

from simplexmin.core import Array


def as_float_tensor(
    x: Array,
    device: Optional[torch.device] = None,
    dtype: torch.dtype = torch.float64,
) -> torch.Tensor:
    """
    Convert a coordinate vector to a tensor.

    Parameters
    ----------
    x:
        Coordinate vector handed to the objective.
    device:
        Target device. If None, the CPU is used.
    dtype:
        Floating-point dtype of the result.
    """
    target_device = device if device is not None else torch.device("cpu")
    return torch.as_tensor(np.asarray(x, dtype=float), dtype=dtype, device=target_device)


def _scalar(value: torch.Tensor | float) -> tuple[float, bool]:
    if isinstance(value, torch.Tensor):
        if value.numel() != 1:
            raise ValueError(
                f"Objective must return a scalar tensor, got shape {tuple(value.shape)}"
            )
        value = value.detach().cpu().item()
    value = float(value)
    return value, not np.isfinite(value)


def tensor_objective(
    fn: Callable[[torch.Tensor], torch.Tensor],
    device: Optional[torch.device] = None,
    dtype: torch.dtype = torch.float64,
) -> Callable[[Array], tuple[float, bool]]:
    """
    Wrap a function of a 1-D tensor as a ``(value, invalid)`` objective.

    The function runs under ``torch.no_grad()``; a non-finite result marks the
    point invalid.

    Example
    -------
    >>> fun = tensor_objective(lambda t: ((t - 1.0) ** 2).sum())
    >>> fun(np.zeros(3))
    (3.0, False)
    """

    def objective(x: Array) -> tuple[float, bool]:
        with torch.no_grad():
            return _scalar(fn(as_float_tensor(x, device=device, dtype=dtype)))

    return objective


def parameters_vector(module: torch.nn.Module) -> Array:
    """Return the trainable parameters of ``module`` as a float64 NumPy vector."""
    params = [p for p in module.parameters() if p.requires_grad]
    if not params:
        raise ValueError("Module has no trainable parameters.")
    with torch.no_grad():
        flat = parameters_to_vector(params)
    return flat.detach().cpu().to(torch.float64).numpy().copy()


def load_parameters(module: torch.nn.Module, x: Array) -> None:
    """Copy a coordinate vector into the trainable parameters of ``module``."""
    params = [p for p in module.parameters() if p.requires_grad]
    expected = sum(p.numel() for p in params)
    if np.size(x) != expected:
        raise ValueError(f"Expected {expected} parameter values, got {np.size(x)}")
    reference = params[0]
    vec = torch.as_tensor(
        np.asarray(x, dtype=float), dtype=reference.dtype, device=reference.device
    )
    with torch.no_grad():
        vector_to_parameters(vec, params)


def module_objective(
    module: torch.nn.Module,
    loss_fn: Callable[[torch.nn.Module], torch.Tensor],
) -> Callable[[Array], tuple[float, bool]]:
    """
    Objective over the trainable parameters of ``module``.

    Each evaluation loads the coordinates into the module and returns
    ``loss_fn(module)``. The module is left holding the last evaluated
    parameters; call :func:`load_parameters` with the result's ``x`` to keep
    the best ones.
    """
    parameters_vector(module)

    def objective(x: Array) -> tuple[float, bool]:
        load_parameters(module, x)
        with torch.no_grad():
            return _scalar(loss_fn(module))

    return objective


__all__ = [
    "as_float_tensor",
    "load_parameters",
    "module_objective",
    "parameters_vector",
    "tensor_objective",
]
