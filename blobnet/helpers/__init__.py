from .Backend import (
    Backend,
    CPUBackend,
    GPUBackend,
    CUPY_AVAILABLE,
    cuda_guard,
    get_backend,
    register_backend,
)
from .GradientChecker import GradientChecker
from .logger import RunLogger

__all__ = [
    "Backend",
    "CPUBackend",
    "GPUBackend",
    "CUPY_AVAILABLE",
    "cuda_guard",
    "get_backend",
    "register_backend",
    "GradientChecker",
    "RunLogger",
]
