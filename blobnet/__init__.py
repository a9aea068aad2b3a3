"""
blobnet: neural-network layers over 4-D blobs, with a NumPy host backend and
a CuPy device backend.
"""

from .errors import BlobNetError, PreconditionError, BackendError
from .config import FillerParameter, LayerParameter, load_layer_params
from .helpers import (
    Backend,
    CPUBackend,
    GPUBackend,
    CUPY_AVAILABLE,
    get_backend,
    register_backend,
    GradientChecker,
    RunLogger,
)
from .blob import Blob, SyncedMemory
from .fillers import get_filler
from .layers import (
    Layer,
    InnerProductLayer,
    CrossEntropyLayer,
    LAYER_REGISTRY,
    register_layer,
    create_layer,
)

__version__ = "0.1.0"

__all__ = [
    "BlobNetError",
    "PreconditionError",
    "BackendError",
    "FillerParameter",
    "LayerParameter",
    "load_layer_params",
    "Backend",
    "CPUBackend",
    "GPUBackend",
    "CUPY_AVAILABLE",
    "get_backend",
    "register_backend",
    "GradientChecker",
    "RunLogger",
    "Blob",
    "SyncedMemory",
    "get_filler",
    "Layer",
    "InnerProductLayer",
    "CrossEntropyLayer",
    "LAYER_REGISTRY",
    "register_layer",
    "create_layer",
]
