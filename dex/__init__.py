"""
dex/ - DEX-side building blocks.

Modules:
- metadata: per-hop metadata byte codec (direction flag + payload)
- pools: simulated push-callback and delta-callback pools
"""

from dex.metadata import DexMetadata, decode_direction, decode_metadata, encode_metadata
from dex.pools import DeltaCallbackPool, PushCallbackPool, constant_product_out

__all__ = [
    "DexMetadata",
    "decode_direction",
    "decode_metadata",
    "encode_metadata",
    "DeltaCallbackPool",
    "PushCallbackPool",
    "constant_product_out",
]
