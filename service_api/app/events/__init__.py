from .feed import EventFeed

__all__ = ["EventFeed"]
