"""Fund Allocator: weighted fund-of-funds allocation over yield-bearing pools."""

__version__ = "0.1.0"
