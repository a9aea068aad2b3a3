import numpy as np

from ..errors import BackendError
from ..helpers.Backend import CUPY_AVAILABLE, cp, cuda_guard, get_backend

# head states: which copy is authoritative
UNINITIALIZED = "uninitialized"
HEAD_AT_CPU = "head_at_cpu"
HEAD_AT_GPU = "head_at_gpu"
SYNCED = "synced"


class SyncedMemory:
    """
    A flat array mirrored between host (NumPy) and device (CuPy) memory.

    Allocation is lazy and zero-filled. Reading the stale side copies from
    the authoritative one and marks both as synced; a mutable access makes
    the accessed side authoritative.
    """

    def __init__(self, size, dtype=np.float32):
        self.size = int(size)
        self.dtype = np.dtype(dtype)
        self.head = UNINITIALIZED
        self._cpu = None
        self._gpu = None

    def _to_cpu(self):
        if self.head == UNINITIALIZED:
            self._cpu = np.zeros(self.size, dtype=self.dtype)
            self.head = HEAD_AT_CPU
        elif self.head == HEAD_AT_GPU:
            if self._cpu is None:
                self._cpu = np.empty(self.size, dtype=self.dtype)
            self._cpu[...] = get_backend("gpu", self.dtype).to_cpu(self._gpu)
            self.head = SYNCED

    def _to_gpu(self):
        if not CUPY_AVAILABLE:
            raise BackendError("Device memory requested but CuPy/CUDA is not available")
        with cuda_guard():
            if self.head == UNINITIALIZED:
                self._gpu = cp.zeros(self.size, dtype=self.dtype)
                self.head = HEAD_AT_GPU
            elif self.head == HEAD_AT_CPU:
                if self._gpu is None:
                    self._gpu = cp.empty(self.size, dtype=self.dtype)
                self._gpu.set(self._cpu)
                self.head = SYNCED

    def cpu_data(self):
        self._to_cpu()
        view = self._cpu.view()
        view.flags.writeable = False
        return view

    def mutable_cpu_data(self):
        self._to_cpu()
        self.head = HEAD_AT_CPU
        return self._cpu

    def gpu_data(self):
        self._to_gpu()
        return self._gpu

    def mutable_gpu_data(self):
        self._to_gpu()
        self.head = HEAD_AT_GPU
        return self._gpu

    def __repr__(self):
        return f"SyncedMemory(size={self.size}, dtype={self.dtype.name}, head={self.head})"
