"""Keep ASHA hearing devices connected while media is playing."""

__version__ = "0.1.0"
