"""HTTP control surface for the signal trader."""

from signal_trader.api.server import create_app, serve

__all__ = ["create_app", "serve"]
