# blobnet/helpers/logger.py
import csv, json, datetime, pathlib

import numpy as np
import matplotlib.pyplot as plt


class RunLogger:
    """
    Records every layer call of a run to runs/<tag>_<timestamp>/history.csv
    and, on save_json(), history.json.
    """
    FIELDS = ["call", "layer", "type", "phase", "loss", "time_s"]

    def __init__(self, root="runs", tag="run"):
        ts = datetime.datetime.now().strftime("%Y%m%d-%H%M%S")
        self.root = pathlib.Path(root)
        self.dir = self.root / f"{tag}_{ts}"
        self.dir.mkdir(parents=True, exist_ok=True)
        self.csv_path = self.dir / "history.csv"
        self.json_path = self.dir / "history.json"
        self.records = []  # list of dicts, one per layer call
        self._csv_header_written = False

    # ---------- logging ----------
    def log_call(self, layer, layer_type, phase, loss, time_s):
        row = {
            "call": len(self.records),
            "layer": str(layer),
            "type": str(layer_type),
            "phase": str(phase),
            "loss": float(loss),
            "time_s": float(time_s),
        }
        self.records.append(row)
        with open(self.csv_path, "a", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=self.FIELDS)
            if not self._csv_header_written:
                writer.writeheader()
                self._csv_header_written = True
            writer.writerow(row)
        return row

    def save_json(self):
        with open(self.json_path, "w") as f:
            json.dump(self.records, f, indent=2)
        return str(self.json_path)

    # ---------- queries ----------
    def loss_history(self, layer=None, phase="forward"):
        return [
            r["loss"] for r in self.records
            if r["phase"] == phase and (layer is None or r["layer"] == layer)
        ]

    def timing_summary(self):
        """Per "<layer>/<phase>": number of calls, mean and total wall time."""
        groups = {}
        for r in self.records:
            groups.setdefault(f"{r['layer']}/{r['phase']}", []).append(r["time_s"])
        return {
            key: {
                "calls": len(times),
                "mean_time_s": float(np.mean(times)),
                "total_time_s": float(np.sum(times)),
            }
            for key, times in groups.items()
        }

    # ---------- plotting ----------
    def _plots_dir(self, subdir):
        out = self.dir / subdir
        out.mkdir(parents=True, exist_ok=True)
        return out

    def plot_loss(self, layer=None, tag="run", subdir="plots"):
        """
        Saves the forward loss of `layer` (all layers if None) per call as
        loss_curve_<tag>.png and returns the path.
        """
        losses = self.loss_history(layer)
        outdir = self._plots_dir(subdir)
        plt.figure()
        if len(losses) > 0:
            plt.plot(losses, label=layer or "all layers")
            plt.legend()
        plt.xlabel("Forward call")
        plt.ylabel("Loss")
        plt.title(f"Loss per forward call ({tag})")
        plt.tight_layout()
        path = outdir / f"loss_curve_{tag}.png"
        plt.savefig(path, dpi=160)
        plt.close()
        return str(path)
