"""PyTorch adapters for simplexmin objectives."""

from .objective import (
    as_float_tensor,
    load_parameters,
    module_objective,
    parameters_vector,
    tensor_objective,
)

__all__ = [
    "as_float_tensor",
    "load_parameters",
    "module_objective",
    "parameters_vector",
    "tensor_objective",
]
