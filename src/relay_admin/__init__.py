"""Relay admin service.

Administrative HTTP surface for a running relay deployment: update
detection, in-place self-update for git checkouts, restart and
process introspection.
"""

__version__ = "1.0.0"
