from .SyncedMemory import SyncedMemory, UNINITIALIZED, HEAD_AT_CPU, HEAD_AT_GPU, SYNCED
from .Blob import Blob

__all__ = [
    "Blob",
    "SyncedMemory",
    "UNINITIALIZED",
    "HEAD_AT_CPU",
    "HEAD_AT_GPU",
    "SYNCED",
]
