"""Forum backend with on-chain transaction verification."""

__version__ = "1.0.0"
