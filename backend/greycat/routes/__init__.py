from . import channels, health, messages, realtime

__all__ = ["channels", "health", "messages", "realtime"]
