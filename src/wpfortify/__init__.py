"""WPFortify: Incremental integrity verification for WordPress installations."""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Sent as the client identifier with every checksum request.
USER_AGENT = f"WPFortify/{__version__}"
