"""Review desk -- moderation queues for the legal-services admin console."""

__version__ = "0.1.0"
