"""
Signal collection boundary: the external page-analysis provider.
"""

from .client import (
    HttpSignalProvider,
    SignalCollectionError,
    SignalCollectionTimeout,
    SignalProvider,
    create_signal_provider,
)

__all__ = [
    "HttpSignalProvider",
    "SignalCollectionError",
    "SignalCollectionTimeout",
    "SignalProvider",
    "create_signal_provider",
]
