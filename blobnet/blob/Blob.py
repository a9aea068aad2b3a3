import numpy as np

from ..errors import PreconditionError
from ..helpers.Backend import get_backend
from .SyncedMemory import SyncedMemory, HEAD_AT_CPU, HEAD_AT_GPU, SYNCED


class Blob:
    """
    4-D buffer (num, channels, height, width) holding values ("data") and
    gradients ("diff") of the same shape, each mirrored between host and
    device memory.

    Views returned by the accessors are shaped like the blob. Host read
    views are non-writeable; use the `mutable_*` accessors to write.
    """

    def __init__(self, num=0, channels=0, height=0, width=0, dtype=np.float32):
        self.dtype = np.dtype(dtype)
        self.reshape(num, channels, height, width)

    def reshape(self, num, channels, height, width):
        """Resize the blob; data and diff are discarded and reallocated."""
        shape = tuple(int(d) for d in (num, channels, height, width))
        if any(d < 0 for d in shape):
            raise PreconditionError(f"Blob dimensions must be non-negative, got {shape}")
        self._shape = shape
        count = shape[0] * shape[1] * shape[2] * shape[3]
        self._data = SyncedMemory(count, self.dtype)
        self._diff = SyncedMemory(count, self.dtype)

    def reshape_like(self, other):
        self.reshape(*other.shape)

    # ----- shape -----
    @property
    def shape(self):
        return self._shape

    @property
    def num(self):
        return self._shape[0]

    @property
    def channels(self):
        return self._shape[1]

    @property
    def height(self):
        return self._shape[2]

    @property
    def width(self):
        return self._shape[3]

    @property
    def count(self):
        return self._data.size

    # ----- host / device views -----
    def cpu_data(self):
        return self._data.cpu_data().reshape(self._shape)

    def gpu_data(self):
        return self._data.gpu_data().reshape(self._shape)

    def mutable_cpu_data(self):
        return self._data.mutable_cpu_data().reshape(self._shape)

    def mutable_gpu_data(self):
        return self._data.mutable_gpu_data().reshape(self._shape)

    def cpu_diff(self):
        return self._diff.cpu_data().reshape(self._shape)

    def gpu_diff(self):
        return self._diff.gpu_data().reshape(self._shape)

    def mutable_cpu_diff(self):
        return self._diff.mutable_cpu_data().reshape(self._shape)

    def mutable_gpu_diff(self):
        return self._diff.mutable_gpu_data().reshape(self._shape)

    # device-generic forms, keyed by Backend.device
    def data(self, device="cpu"):
        return self._pick(device, self.cpu_data, self.gpu_data)()

    def mutable_data(self, device="cpu"):
        return self._pick(device, self.mutable_cpu_data, self.mutable_gpu_data)()

    def diff(self, device="cpu"):
        return self._pick(device, self.cpu_diff, self.gpu_diff)()

    def mutable_diff(self, device="cpu"):
        return self._pick(device, self.mutable_cpu_diff, self.mutable_gpu_diff)()

    @staticmethod
    def _pick(device, cpu_fn, gpu_fn):
        if device == "cpu":
            return cpu_fn
        if device == "gpu":
            return gpu_fn
        raise PreconditionError(f"Unknown device: {device}")

    @property
    def data_head(self):
        return self._data.head

    @property
    def diff_head(self):
        return self._diff.head

    # ----- updates -----
    def update(self):
        """data -= diff, on whichever side holds the authoritative data."""
        head = self._data.head
        if head == HEAD_AT_CPU:
            device = "cpu"
        elif head in (HEAD_AT_GPU, SYNCED):
            device = "gpu"
        else:
            return
        backend = get_backend(device, self.dtype)
        backend.axpy(self.count, -1.0, self.diff(device), self.mutable_data(device))

    def copy_from(self, source, copy_diff=False, reshape=False):
        """Copy data (or diff) from `source` through host memory."""
        if source.count != self.count or source.shape != self.shape:
            if reshape:
                self.reshape_like(source)
            elif source.count != self.count:
                raise PreconditionError(
                    f"Trying to copy blobs of different sizes: {source.shape} -> {self.shape}"
                )
        if copy_diff:
            self.mutable_cpu_diff().reshape(-1)[...] = source.cpu_diff().reshape(-1)
        else:
            self.mutable_cpu_data().reshape(-1)[...] = source.cpu_data().reshape(-1)

    def __repr__(self):
        return f"Blob(shape={self._shape}, dtype={self.dtype.name})"
