"""
L2 Resolver — release index lookups. Network reads only, no writes.
"""

from frida_manager.core.services.frida_install.resolver.releases import (  # noqa: F401
    ReleaseResolver,
)
