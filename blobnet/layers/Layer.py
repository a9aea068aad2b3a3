import time

import numpy as np

from ..errors import PreconditionError
from ..helpers.Backend import get_backend


class Layer:
    """
    A unit of the host network: reads bottom blobs and writes top blobs on
    forward, and the reverse for gradients on backward.

    Subclasses set `type` and the exact blob counts, and implement
    `reshape`, `_forward` and `_backward` (plus `layer_setup` when they own
    parameter blobs). Numeric work goes through `self.backend`, so one
    implementation serves both host and device.
    """
    type = None
    # -1 means any number of blobs
    exact_num_bottom_blobs = -1
    exact_num_top_blobs = -1

    def __init__(self, layer_param, backend=None, logger=None):
        self.layer_param = layer_param
        self.backend = backend if backend is not None else get_backend(layer_param.backend)
        self.logger = logger
        self.blobs = []  # learnable parameter blobs, owned by the layer
        self._ready = False

    @property
    def name(self):
        return self.layer_param.name or self.type

    # ----- setup -----
    def setup(self, bottom, top):
        self.check_blob_counts(bottom, top)
        self.layer_setup(bottom, top)
        self.reshape(bottom, top)
        self._ready = True
        if self.layer_param.verbose:
            for i, blob in enumerate(top):
                print(f"{self.name} ({self.type}) top[{i}] shape: {blob.shape}")

    def check_blob_counts(self, bottom, top):
        if self.exact_num_bottom_blobs >= 0 and len(bottom) != self.exact_num_bottom_blobs:
            raise PreconditionError(
                f"{self.type} Layer takes {self.exact_num_bottom_blobs} bottom blob(s) "
                f"as input, got {len(bottom)}"
            )
        if self.exact_num_top_blobs >= 0 and len(top) != self.exact_num_top_blobs:
            raise PreconditionError(
                f"{self.type} Layer takes {self.exact_num_top_blobs} top blob(s) "
                f"as output, got {len(top)}"
            )

    def layer_setup(self, bottom, top):
        pass

    def reshape(self, bottom, top):
        raise NotImplementedError

    # ----- forward / backward -----
    def forward(self, bottom, top):
        """Compute top from bottom. Returns this layer's loss contribution."""
        self._check_ready("forward")
        t0 = time.perf_counter()
        loss = self._forward(bottom, top)
        self._log("forward", loss, t0)
        return loss

    def backward(self, top, propagate_down, bottom):
        """
        Compute parameter gradients, and bottom gradients where
        `propagate_down` (one bool per bottom, or a single bool) is set.
        A single bool applies only to the bottoms `allow_backward` accepts.
        Returns this layer's loss contribution.
        """
        self._check_ready("backward")
        if isinstance(propagate_down, (bool, np.bool_)):
            propagate_down = [bool(propagate_down) and self.allow_backward(i) for i in range(len(bottom))]
        elif len(propagate_down) != len(bottom):
            raise PreconditionError(
                f"{self.name}: propagate_down has {len(propagate_down)} flag(s) "
                f"for {len(bottom)} bottom blob(s)"
            )
        t0 = time.perf_counter()
        loss = self._backward(top, list(propagate_down), bottom)
        self._log("backward", loss, t0)
        return loss

    def allow_backward(self, bottom_index):
        """Whether bottom `bottom_index` can receive a gradient."""
        return True

    def _forward(self, bottom, top):
        raise NotImplementedError

    def _backward(self, top, propagate_down, bottom):
        raise NotImplementedError

    def _check_ready(self, phase):
        if not self._ready:
            raise PreconditionError(f"{self.name}: setup() must be called before {phase}()")

    def _log(self, phase, loss, t0):
        if self.logger is None:
            return
        # device work is queued; wait for it so the timing is real
        self.backend.synchronize()
        self.logger.log_call(self.name, self.type, phase, loss, time.perf_counter() - t0)

    # expose params / grads for an optimizer
    def params(self):
        # Return list of parameter arrays (e.g., [W, b]) on the host
        return [blob.mutable_cpu_data() for blob in self.blobs]

    def grads(self):
        # Return list of gradient arrays matching params()
        return [blob.mutable_cpu_diff() for blob in self.blobs]
