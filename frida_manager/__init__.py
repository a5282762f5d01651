"""frida-server manager — install, switch and supervise frida-server."""

__version__ = "0.1.0"
