"""ChatMeld - multi-agent group chat conductor."""

__version__ = "0.1.0"
