"""Admin HTTP API."""

from cip.api.app import create_app
from cip.api.container import Container, build_container, wire

__all__ = ["Container", "build_container", "create_app", "wire"]
