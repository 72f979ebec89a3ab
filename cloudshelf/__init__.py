"""Cloud file sharing: accounts, friends, chat and per-user storage over a binary TCP protocol."""

__version__ = "0.1.0"