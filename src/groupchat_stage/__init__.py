"""Group Chat Stage: membership-gated group chat backend."""

__version__ = "1.0.0"
