"""
Transfer Layer.

This package moves bytes directly between the caller and the object store
through presigned URLs.
"""

from .cancellation import CancelToken
from .executor import TransferExecutor
from .sink import FileSink

__all__ = ["CancelToken", "FileSink", "TransferExecutor"]
