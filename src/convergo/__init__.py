"""ConVergo: capture companion conversations and publish them as drafts."""

__version__ = "0.1.0"
