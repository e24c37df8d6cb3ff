from .postgres import UserStore

__all__ = ["UserStore"]
