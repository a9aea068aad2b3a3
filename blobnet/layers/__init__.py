from .Layer import Layer
from .InnerProductLayer import InnerProductLayer
from .CrossEntropyLayer import CrossEntropyLayer

# layer type tag -> layer class
LAYER_REGISTRY = {
    InnerProductLayer.type: InnerProductLayer,
    CrossEntropyLayer.type: CrossEntropyLayer,
}


def register_layer(layer_type, layer_class):
    """Register a layer class under the given type tag."""
    LAYER_REGISTRY[layer_type] = layer_class


def create_layer(layer_param, backend=None, logger=None):
    """Build the layer named by `layer_param.type`. Raises KeyError if unknown."""
    if layer_param.type not in LAYER_REGISTRY:
        raise KeyError(
            f"Unknown layer type: {layer_param.type}. Available: {list(LAYER_REGISTRY.keys())}"
        )
    return LAYER_REGISTRY[layer_param.type](layer_param, backend=backend, logger=logger)


__all__ = [
    "Layer",
    "InnerProductLayer",
    "CrossEntropyLayer",
    "LAYER_REGISTRY",
    "register_layer",
    "create_layer",
]
