import numpy as np

from ..errors import PreconditionError
from .Layer import Layer


class CrossEntropyLayer(Layer):
    """
    Cross-entropy between predicted probabilities (bottom[0]) and targets
    (bottom[1]), reduced to a scalar loss in top[0].

    Predictions are read as outer_num x inner_num (batch x per-sample size).
    The target layout picks the formula:
      categorical  targets shaped like predictions     -sum t*log(p)
      binary       one probability and target / sample -sum t*log(p) + (1-t)*log(1-p)
      label        one class index / sample            -sum log(p[label])
    Predictions are clamped to [eps, 1 - eps] before any log.
    """
    type = "CrossEntropy"
    exact_num_bottom_blobs = 2
    exact_num_top_blobs = 1

    CATEGORICAL = "categorical"
    BINARY = "binary"
    LABEL = "label"

    def layer_setup(self, bottom, top):
        eps = self.layer_param.clip_epsilon
        if not 0.0 < eps < 0.5:
            raise PreconditionError(f"{self.name}: clip_epsilon must be in (0, 0.5), got {eps}")
        self.eps = float(eps)
        self.loss_weight = float(self.layer_param.loss_weight)
        self._loss = 0.0

    def reshape(self, bottom, top):
        predictions, targets = bottom
        if predictions.num <= 0:
            raise PreconditionError(f"{self.name}: predictions have no samples, shape {predictions.shape}")
        if targets.num != predictions.num:
            raise PreconditionError(
                f"{self.name}: predictions and targets must have the same num, "
                f"got {predictions.shape} and {targets.shape}"
            )
        self.outer_num = predictions.num
        self.inner_num = predictions.count // predictions.num
        if targets.count == predictions.count and self.inner_num > 1:
            self.mode = self.CATEGORICAL
        elif targets.count == self.outer_num:
            self.mode = self.BINARY if self.inner_num == 1 else self.LABEL
        else:
            raise PreconditionError(
                f"{self.name}: targets shape {targets.shape} is incompatible with "
                f"predictions shape {predictions.shape}"
            )
        self.normalizer = self.outer_num if self.layer_param.normalize else 1
        top[0].reshape(1, 1, 1, 1)
        # the loss weight seeds the gradient flowing back into this layer
        top[0].mutable_cpu_diff()[...] = self.loss_weight

    def _clipped(self, predictions):
        p = predictions.reshape(self.outer_num, self.inner_num).astype(np.float64)
        return self.backend.clip(p, self.eps, 1.0 - self.eps)

    def _labels(self, targets):
        labels = targets.reshape(self.outer_num).astype(np.int64)
        low, high = int(labels.min()), int(labels.max())
        if low < 0 or high >= self.inner_num:
            raise PreconditionError(
                f"{self.name}: labels must be in [0, {self.inner_num}), got [{low}, {high}]"
            )
        return labels

    def allow_backward(self, bottom_index):
        # targets are never learned
        return bottom_index == 0

    def _forward(self, bottom, top):
        backend = self.backend
        device = backend.device
        with backend.guard():
            p = self._clipped(bottom[0].data(device))
            targets = bottom[1].data(device)
            if self.mode == self.CATEGORICAL:
                t = targets.reshape(self.outer_num, self.inner_num)
                loss = -backend.sum(t * backend.log(p))
            elif self.mode == self.BINARY:
                t = targets.reshape(self.outer_num, 1)
                loss = -backend.sum(t * backend.log(p) + (1 - t) * backend.log(1 - p))
            else:
                labels = self._labels(targets)
                loss = -backend.sum(backend.log(p[backend.arange(self.outer_num), labels]))
            # float() reads the value back, after queued device work is done
            loss = float(loss) / self.normalizer
            top[0].mutable_data(device)[...] = loss
        self._loss = loss * self.loss_weight
        return self._loss

    def _backward(self, top, propagate_down, bottom):
        if propagate_down[1]:
            raise PreconditionError(f"{self.name}: cannot backpropagate to the target input")
        if not propagate_down[0]:
            return self._loss
        backend = self.backend
        device = backend.device
        with backend.guard():
            scale = float(top[0].diff(device).reshape(-1)[0]) / self.normalizer
            p = self._clipped(bottom[0].data(device))
            targets = bottom[1].data(device)
            diff = bottom[0].mutable_diff(device).reshape(self.outer_num, self.inner_num)
            if self.mode == self.CATEGORICAL:
                t = targets.reshape(self.outer_num, self.inner_num)
                diff[...] = -scale * t / p
            elif self.mode == self.BINARY:
                t = targets.reshape(self.outer_num, 1)
                diff[...] = scale * (p - t) / (p * (1 - p))
            else:
                labels = self._labels(targets)
                rows = backend.arange(self.outer_num)
                diff[...] = 0
                diff[rows, labels] = -scale / p[rows, labels]
        return self._loss
