"""Core functionality for pvectl.

Configuration resolution, the Proxmox API connection, repositories and
the multi-resource orchestration services live here. Submodules are
imported directly (``from pvectl.core.config import ConfigService``).
"""
