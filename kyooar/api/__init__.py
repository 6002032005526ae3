"""HTTP surface of the console: page loads guarded by entitlements."""

from kyooar.api.app import create_app

__all__ = ["create_app"]
