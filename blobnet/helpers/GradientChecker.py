import numpy as np


class GradientChecker:
    """
    Compares a layer's analytic gradients with central finite differences.

    The objective is 0.5 * sum(top ** 2), so the top diff fed to backward is
    the top data itself. Every entry of each checked bottom blob and each
    parameter blob is perturbed by +/- stepsize. An entry fails when
    |analytic - numeric| > threshold * max(|analytic|, |numeric|, 1).
    Use float64 blobs; float32 is too coarse for tight thresholds.
    """

    def __init__(self, stepsize=1e-3, threshold=1e-3):
        self.stepsize = stepsize
        self.threshold = threshold

    def check_gradient(self, layer, bottom, top, check_bottom=None):
        """
        Returns a list of failing (blob_label, index, analytic, numeric)
        tuples; empty when every gradient matches.

        check_bottom: indices of bottom blobs to check (default: every
        bottom the layer accepts gradients for).
        """
        layer.setup(bottom, top)
        if check_bottom is None:
            check_bottom = [i for i in range(len(bottom)) if layer.allow_backward(i)]
        check_bottom = sorted(set(check_bottom))
        propagate_down = [i in check_bottom for i in range(len(bottom))]

        # analytic gradients
        self.objective(layer, bottom, top)
        layer.backward(top, propagate_down, bottom)
        checked = [(f"param[{i}]", blob) for i, blob in enumerate(layer.blobs)]
        checked += [(f"bottom[{i}]", bottom[i]) for i in check_bottom]
        analytic = [np.array(blob.cpu_diff(), dtype=np.float64).reshape(-1) for _, blob in checked]

        failures = []
        for (label, blob), grad in zip(checked, analytic):
            for idx in range(blob.count):
                orig = float(blob.cpu_data().reshape(-1)[idx])
                # re-fetch the mutable view each time: forward may have
                # synced the blob to the device in between
                blob.mutable_cpu_data().reshape(-1)[idx] = orig + self.stepsize
                positive = self.objective(layer, bottom, top)
                blob.mutable_cpu_data().reshape(-1)[idx] = orig - self.stepsize
                negative = self.objective(layer, bottom, top)
                blob.mutable_cpu_data().reshape(-1)[idx] = orig
                numeric = (positive - negative) / (2.0 * self.stepsize)
                scale = max(abs(grad[idx]), abs(numeric), 1.0)
                if abs(grad[idx] - numeric) > self.threshold * scale:
                    failures.append((label, idx, float(grad[idx]), float(numeric)))
        return failures

    @staticmethod
    def objective(layer, bottom, top):
        """Run forward, set each top diff to its data, return 0.5 * sum(top ** 2)."""
        layer.forward(bottom, top)
        total = 0.0
        for blob in top:
            data = np.array(blob.cpu_data(), dtype=np.float64)
            total += 0.5 * float(np.sum(data * data))
            blob.mutable_cpu_diff()[...] = data
        return total
