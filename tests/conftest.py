import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from blobnet import Blob, CUPY_AVAILABLE, get_backend

requires_gpu = pytest.mark.skipif(not CUPY_AVAILABLE, reason="CuPy/CUDA not available")


def make_blob(values, shape=None, dtype=np.float64):
    """Blob holding `values`, shaped (num, channels, height, width)."""
    values = np.asarray(values, dtype=dtype)
    if shape is None:
        shape = values.shape + (1,) * (4 - values.ndim)
    blob = Blob(*shape, dtype=dtype)
    blob.mutable_cpu_data()[...] = values.reshape(shape)
    return blob


@pytest.fixture
def cpu64():
    return get_backend("cpu", np.float64)
