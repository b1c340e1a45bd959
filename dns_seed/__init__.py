"""
DNS Seed
Hands out peers of a decentralized network as A, AAAA and SRV records
"""

from .version import __author__, __version__

__all__ = ["__author__", "__version__"]
