"""Local persistent volume StorageClass building, validation and cluster management."""

__version__ = "0.1.0"