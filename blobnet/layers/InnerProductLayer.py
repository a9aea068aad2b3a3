from ..blob import Blob
from ..errors import PreconditionError
from ..fillers import get_filler
from .Layer import Layer


class InnerProductLayer(Layer):
    """
    Fully connected layer: top = bottom @ W (+ bias)

    bottom: (M, ...) read as an M x K matrix, K = count / num
    weight: (1, 1, K, N), bias: (1, 1, 1, N), N = num_output
    top:    (M, N, 1, 1)

    The bias is broadcast over the batch as the outer product of an all-ones
    column (the bias multiplier) with the bias row.
    """
    type = "InnerProduct"
    exact_num_bottom_blobs = 1
    exact_num_top_blobs = 1

    def layer_setup(self, bottom, top):
        num_output = self.layer_param.num_output
        if num_output <= 0:
            raise PreconditionError(f"{self.name}: num_output must be positive, got {num_output}")
        self._check_batch(bottom[0])
        self.bias_term = bool(self.layer_param.bias_term)
        # Figure out the dimensions
        self.N = int(num_output)
        self.K = bottom[0].count // bottom[0].num
        dtype = self.backend.default_float

        # Initialize and fill the weight
        weight = Blob(1, 1, self.K, self.N, dtype=dtype)
        get_filler(self.layer_param.weight_filler).fill(weight)
        self.blobs = [weight]

        # If necessary, initialize and fill the bias term
        if self.bias_term:
            bias = Blob(1, 1, 1, self.N, dtype=dtype)
            get_filler(self.layer_param.bias_filler).fill(bias)
            self.blobs.append(bias)

    def reshape(self, bottom, top):
        self._check_batch(bottom[0])
        K = bottom[0].count // bottom[0].num
        if K != self.K:
            raise PreconditionError(
                f"{self.name}: input size per sample changed from {self.K} to {K}; "
                f"parameters cannot be resized"
            )
        self.M = bottom[0].num
        top[0].reshape(self.M, self.N, 1, 1)
        if self.bias_term:
            self.bias_multiplier = Blob(1, 1, 1, self.M, dtype=self.backend.default_float)
            self.bias_multiplier.mutable_cpu_data()[...] = 1

    def _check_batch(self, blob):
        if blob.num <= 0:
            raise PreconditionError(f"{self.name}: input blob has no samples, shape {blob.shape}")

    def _forward(self, bottom, top):
        backend = self.backend
        device = backend.device
        bottom_data = bottom[0].data(device)
        top_data = top[0].mutable_data(device)
        weight = self.blobs[0].data(device)
        backend.gemm(False, False, self.M, self.N, self.K, 1.0,
                     bottom_data, weight, 0.0, top_data)
        if self.bias_term:
            backend.gemm(False, False, self.M, self.N, 1, 1.0,
                         self.bias_multiplier.data(device), self.blobs[1].data(device),
                         1.0, top_data)
        return 0.0

    def _backward(self, top, propagate_down, bottom):
        backend = self.backend
        device = backend.device
        top_diff = top[0].diff(device)
        bottom_data = bottom[0].data(device)
        # Gradient with respect to weight
        backend.gemm(True, False, self.K, self.N, self.M, 1.0,
                     bottom_data, top_diff, 0.0, self.blobs[0].mutable_diff(device))
        if self.bias_term:
            # Gradient with respect to bias
            backend.gemv(True, self.M, self.N, 1.0, top_diff,
                         self.bias_multiplier.data(device), 0.0,
                         self.blobs[1].mutable_diff(device))
        if propagate_down[0]:
            # Gradient with respect to bottom data
            backend.gemm(False, True, self.M, self.K, self.N, 1.0,
                         top_diff, self.blobs[0].data(device), 0.0,
                         bottom[0].mutable_diff(device))
        # no loss term of its own
        return 0.0
