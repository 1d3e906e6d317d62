"""Fedora CoreOS image cache - fetch, verify and cache CoreOS disk images.

This package resolves stream/version/architecture requests against the
CoreOS build infrastructure, downloads artifacts with their signatures and
checksum metadata, verifies them, and keeps them in a predictable cache.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
