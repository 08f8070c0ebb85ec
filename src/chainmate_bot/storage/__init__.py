from .contact_store import Contact, ContactBook, ContactStore
from .history_store import HistoryStore
from .user_store import UserConfig, UserStore

__all__ = [
    "Contact",
    "ContactBook",
    "ContactStore",
    "HistoryStore",
    "UserConfig",
    "UserStore",
]
