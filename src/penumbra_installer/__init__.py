"""Penumbra installer: declarative provisioning of PenumbraOS devices."""

__version__ = "0.3.0"
