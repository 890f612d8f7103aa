"""Segmented memory server, its allocation and compaction, and the binary protocol its peers speak."""

__version__ = "0.1.0"