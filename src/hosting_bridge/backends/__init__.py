"""
Hosting Backend Abstraction Layer.

This module provides a pluggable backend system for hosting control panels.
Each backend implements the HostingBackend interface.

Supported providers:
- forge: Laravel Forge API
- ploi: Ploi API

Usage:
    from hosting_bridge.backends import HostingManager

    manager = HostingManager(config)
    backend = manager.resolve('forge')
    servers = backend.list_servers()
"""

from .base import HostingBackend
from .forge import ForgeBackend
from .ploi import PloiBackend
from .registry import BACKEND_REGISTRY, HostingManager, get_backend

__all__ = [
    'HostingBackend',
    'HostingManager',
    'get_backend',
    'BACKEND_REGISTRY',
    'ForgeBackend',
    'PloiBackend',
]
