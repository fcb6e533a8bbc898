"""
sysnap - machine state snapshots, encrypted and delivered to a collector.

Collects hardware, software, network and performance information into one
snapshot, encrypts it with AES and posts it to a remote endpoint.
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
