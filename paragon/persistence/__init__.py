from .store import TickStore, TickRecord

__all__ = ["TickStore", "TickRecord"]
