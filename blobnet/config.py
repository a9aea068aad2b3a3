"""
Layer configuration records.

Records are immutable and read once when a layer is constructed. They are
built from plain dicts or loaded from a JSON file holding one layer dict or
{"layers": [...]}.
"""

import json
import os
from dataclasses import dataclass, field, fields
from typing import Optional

from .errors import PreconditionError

_BIAS_ALIASES = ("bias_enabled", "biasterm")


@dataclass(frozen=True)
class FillerParameter:
    type: str = "constant"
    value: float = 0.0
    min: float = 0.0
    max: float = 1.0
    mean: float = 0.0
    std: float = 1.0
    seed: Optional[int] = None

    @classmethod
    def from_dict(cls, d):
        return cls(**_known_fields(cls, d))


@dataclass(frozen=True)
class LayerParameter:
    name: str = ""
    type: str = ""
    num_output: int = 0
    bias_term: bool = True
    weight_filler: FillerParameter = field(default_factory=FillerParameter)
    bias_filler: FillerParameter = field(default_factory=FillerParameter)
    backend: str = "cpu"
    normalize: bool = True
    loss_weight: float = 1.0
    clip_epsilon: float = 1e-7
    verbose: bool = False

    @classmethod
    def from_dict(cls, d):
        d = dict(d)
        for alias in _BIAS_ALIASES:
            if alias in d:
                d["bias_term"] = d.pop(alias)
        for key in ("weight_filler", "bias_filler"):
            if isinstance(d.get(key), dict):
                d[key] = FillerParameter.from_dict(d[key])
        return cls(**_known_fields(cls, d))


def _known_fields(record_cls, d):
    unknown = sorted(set(d) - {f.name for f in fields(record_cls)})
    if unknown:
        raise PreconditionError(f"Unknown {record_cls.__name__} option(s): {unknown}")
    return d


def load_layer_params(path: str) -> list:
    """Load layer configs from a JSON file. Raises FileNotFoundError if it does not exist."""
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Config not found: {path}")
    with open(path) as f:
        data = json.load(f)
    if isinstance(data, dict) and "layers" in data:
        entries = data["layers"]
    elif isinstance(data, list):
        entries = data
    else:
        entries = [data]
    return [LayerParameter.from_dict(e) for e in entries]
