import numpy as np

from ..errors import PreconditionError


class Filler:
    """Writes initial values into a blob's host data."""

    def __init__(self, filler_param):
        self.filler_param = filler_param

    def _rng(self):
        # a seeded fill is reproducible; otherwise share the global RNG
        seed = self.filler_param.seed
        return np.random.RandomState(seed) if seed is not None else np.random

    def fill(self, blob):
        raise NotImplementedError


class ConstantFiller(Filler):
    def fill(self, blob):
        blob.mutable_cpu_data()[...] = self.filler_param.value


class UniformFiller(Filler):
    def fill(self, blob):
        p = self.filler_param
        if p.min > p.max:
            raise PreconditionError(f"Uniform filler needs min <= max, got [{p.min}, {p.max}]")
        blob.mutable_cpu_data()[...] = self._rng().uniform(p.min, p.max, size=blob.shape)


class GaussianFiller(Filler):
    def fill(self, blob):
        p = self.filler_param
        if p.std < 0:
            raise PreconditionError(f"Gaussian filler needs std >= 0, got {p.std}")
        blob.mutable_cpu_data()[...] = self._rng().normal(p.mean, p.std, size=blob.shape)


class PositiveUnitballFiller(Filler):
    """
    Uniform [0, 1) values; the blob is read as a (count / width) x width
    matrix and each column (one output unit) is rescaled to sum to 1.
    """

    def fill(self, blob):
        if blob.count == 0:
            return
        cols = self._rng().uniform(0.0, 1.0, size=(blob.count // blob.width, blob.width))
        cols /= cols.sum(axis=0, keepdims=True)
        blob.mutable_cpu_data()[...] = cols.reshape(blob.shape)


class XavierFiller(Filler):
    """
    U(-s, s) with s = sqrt(3 / fan_in). Weights are laid out with the
    output units along width, so fan_in = count / width (K for a K x N
    inner-product weight).
    """

    def fill(self, blob):
        if blob.count == 0:
            return
        fan_in = blob.count // blob.width
        scale = np.sqrt(3.0 / fan_in)
        blob.mutable_cpu_data()[...] = self._rng().uniform(-scale, scale, size=blob.shape)


FILLERS = {
    "constant": ConstantFiller,
    "uniform": UniformFiller,
    "gaussian": GaussianFiller,
    "positive_unitball": PositiveUnitballFiller,
    "xavier": XavierFiller,
}


def get_filler(filler_param):
    """Return the filler for `filler_param.type`."""
    try:
        filler_class = FILLERS[filler_param.type]
    except KeyError:
        raise PreconditionError(
            f"Unknown filler name: {filler_param.type}. Available: {list(FILLERS.keys())}"
        ) from None
    return filler_class(filler_param)
