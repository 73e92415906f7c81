"""Lost Ark Market Sync — market listing sweeps into a relational store."""

__version__ = "0.1.0"
