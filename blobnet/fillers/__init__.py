from .Filler import (
    Filler,
    ConstantFiller,
    UniformFiller,
    GaussianFiller,
    PositiveUnitballFiller,
    XavierFiller,
    FILLERS,
    get_filler,
)

__all__ = [
    "Filler",
    "ConstantFiller",
    "UniformFiller",
    "GaussianFiller",
    "PositiveUnitballFiller",
    "XavierFiller",
    "FILLERS",
    "get_filler",
]
