from .updates import CallbackQuery, Chat, HandledUpdate, Message, Notification, Reply, Update, User

__all__ = [
    "CallbackQuery",
    "Chat",
    "HandledUpdate",
    "Message",
    "Notification",
    "Reply",
    "Update",
    "User",
]
