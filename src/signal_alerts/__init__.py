# SPDX-License-Identifier: MIT
# src/signal_alerts/__init__.py
"""Trading-signal alert dispatch."""

__version__ = "1.0.0"
