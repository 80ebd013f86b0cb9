from .system_sleeper import SystemSleeper

__all__ = ["SystemSleeper"]
