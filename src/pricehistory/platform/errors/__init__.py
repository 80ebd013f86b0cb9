from .platform_error import PlatformError

__all__ = ["PlatformError"]
