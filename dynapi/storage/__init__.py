"""Asset storage for binary and image responses."""

from .assets import AssetStore

__all__ = ["AssetStore"]
