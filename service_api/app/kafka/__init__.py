from .consumer import EventSubscriber, Reply
from .producer import EventPublisher

__all__ = ["EventPublisher", "EventSubscriber", "Reply"]
