# blobnet/helpers/Backend.py
import contextlib

import numpy as np

from ..errors import BackendError, PreconditionError

VERBOSE_STARTUP = False  # set True to print device info at import

try:
    import cupy as cp
    if VERBOSE_STARTUP:
        print("CuPy:", cp.__version__)
        print("GPU count:", cp.cuda.runtime.getDeviceCount())
        print("Driver ver:", cp.cuda.runtime.driverGetVersion())
        print("Runtime ver:", cp.cuda.runtime.runtimeGetVersion())
    # Quick runtime check
    try:
        _ = (cp.array([1, 2, 3]) + 1).sum()
        CUPY_AVAILABLE = True
        if VERBOSE_STARTUP:
            print("CuPy is available - GPU backend enabled")
    except Exception as e:
        print(f"CuPy installed but CUDA runtime error: {e}")
        print("GPU backend disabled")
        cp = None
        CUPY_AVAILABLE = False
except ImportError:
    cp = None
    CUPY_AVAILABLE = False
    if VERBOSE_STARTUP:
        print("CuPy not available - CPU backend only")


if CUPY_AVAILABLE:
    _CUDA_ERRORS = (
        cp.cuda.runtime.CUDARuntimeError,
        cp.cuda.driver.CUDADriverError,
        cp.cuda.memory.OutOfMemoryError,
    )
else:
    _CUDA_ERRORS = ()


@contextlib.contextmanager
def cuda_guard():
    """Re-raise CUDA runtime, driver and allocation failures as BackendError."""
    try:
        yield
    except _CUDA_ERRORS as e:
        raise BackendError(f"Device operation failed: {e}") from e


class Backend:
    """
    Dense linear algebra on one kind of memory.

    Arrays are passed flat or shaped; the primitives reinterpret them with the
    explicit dimensions, BLAS style. Both implementations share this code and
    differ only in the array module (`xp`) and the device tag.
    """
    device = None

    def __init__(self, xp, default_float=np.float32):
        self.xp = xp
        self.default_float = default_float

    @contextlib.contextmanager
    def guard(self):
        """Context in which device failures are raised as BackendError."""
        yield

    # -------- BLAS-like primitives --------
    def gemm(self, trans_a, trans_b, M, N, K, alpha, A, B, beta, C):
        """
        C = alpha * op(A) @ op(B) + beta * C

        op(A) is M x K, op(B) is K x N, C is M x N. When beta is 0 the
        previous contents of C are never read.
        """
        a = A.reshape(K, M).T if trans_a else A.reshape(M, K)
        b = B.reshape(N, K).T if trans_b else B.reshape(K, N)
        c = self._out_view(C, (M, N))
        with self.guard():
            prod = self.xp.matmul(a, b)
            if beta == 0:
                c[...] = alpha * prod
            else:
                c *= beta
                c += alpha * prod
        return C

    def gemv(self, trans_a, M, N, alpha, A, x, beta, y):
        """
        y = alpha * op(A) @ x + beta * y, with A stored as M x N.
        """
        a = A.reshape(M, N)
        if trans_a:
            a = a.T
        out = self._out_view(y, (a.shape[0],))
        with self.guard():
            prod = self.xp.matmul(a, x.reshape(a.shape[1]))
            if beta == 0:
                out[...] = alpha * prod
            else:
                out *= beta
                out += alpha * prod
        return y

    def axpy(self, N, alpha, X, Y):
        """Y += alpha * X over the first N elements."""
        out = self._out_view(Y, (Y.size,))
        with self.guard():
            out[:N] += alpha * X.reshape(-1)[:N]
        return Y

    def _out_view(self, arr, shape):
        # writes must land in the caller's buffer, so no silent copies
        if not arr.flags.c_contiguous:
            raise PreconditionError("Output array must be C-contiguous")
        return arr.reshape(shape)

    # -------- transfers --------
    def to_cpu(self, x):
        """Move array to CPU (NumPy)."""
        return x

    def synchronize(self):
        """Block until all queued device work completes."""

    # -------- delegate unknown attrs to xp --------
    def __getattr__(self, name):
        if name == "xp":
            raise AttributeError(name)
        return getattr(self.xp, name)

    def __repr__(self):
        return f"{type(self).__name__}(default_float={np.dtype(self.default_float).name})"


class CPUBackend(Backend):
    """Host backend (NumPy)."""
    device = "cpu"

    def __init__(self, default_float=np.float32, verbose=False):
        super().__init__(np, default_float=default_float)
        if verbose:
            print("Using CPU backend (NumPy)")


class GPUBackend(Backend):
    """Device backend (CuPy). Device failures are fatal: no CPU fallback."""
    device = "gpu"

    def __init__(self, default_float=np.float32, verbose=False):
        if not CUPY_AVAILABLE:
            raise BackendError("GPU backend requested but CuPy/CUDA is not available")
        super().__init__(cp, default_float=default_float)
        if verbose:
            print("Using GPU backend (CuPy)")
            print(f"GPU: {cp.cuda.runtime.getDeviceCount()} device(s) available")

    def guard(self):
        return cuda_guard()

    def to_cpu(self, x):
        with cuda_guard():
            return cp.asnumpy(x)

    def synchronize(self):
        with cuda_guard():
            cp.cuda.Stream.null.synchronize()


_REGISTRY = {
    "cpu": CPUBackend,
    "gpu": GPUBackend,
}
_INSTANCES = {}


def register_backend(name, backend_class):
    """Register a backend class under the given name."""
    _REGISTRY[name] = backend_class
    for key in [k for k in _INSTANCES if k[0] == name]:
        del _INSTANCES[key]


def get_backend(name="cpu", default_float=np.float32):
    """
    Return the shared backend instance for `name` and float type.
    Raises KeyError if the name is unknown.
    """
    if name not in _REGISTRY:
        raise KeyError(f"Unknown backend: {name}. Available: {list(_REGISTRY.keys())}")
    key = (name, np.dtype(default_float).name)
    if key not in _INSTANCES:
        _INSTANCES[key] = _REGISTRY[name](default_float=default_float)
    return _INSTANCES[key]
