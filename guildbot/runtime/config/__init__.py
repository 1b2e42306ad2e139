"""Runtime configuration.

Import ``cfg`` through the module (``settings.cfg``) where it must follow
``reset_all_singletons``.
"""

from .settings import Settings

__all__ = ["Settings"]
