from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int = Field(description="Sender's user id")
    is_bot: bool = False
    first_name: str = ""
    username: Optional[str] = Field(default=None, description="Sender's @handle without the @")


class Chat(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    type: str = Field(default="private", description="private, group, supergroup or channel")
    title: Optional[str] = None

    @property
    def is_group(self) -> bool:
        return self.type in ("group", "supergroup")


class Message(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message_id: int
    chat: Chat
    from_user: Optional[User] = Field(default=None, alias="from")
    text: Optional[str] = None
    reply_to_message: Optional["Message"] = None


class CallbackQuery(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    from_user: User = Field(alias="from")
    message: Optional[Message] = None
    data: Optional[str] = None


class Update(BaseModel):
    model_config = ConfigDict(extra="ignore")

    update_id: int
    message: Optional[Message] = None
    callback_query: Optional[CallbackQuery] = None


class Reply(BaseModel):
    """One outbound message: text plus an optional inline keyboard."""

    chat_id: int
    text: str
    parse_mode: Optional[str] = "Markdown"
    reply_markup: Optional[Dict[str, Any]] = None

    def as_send_message(self) -> Dict[str, Any]:
        """Bot API ``sendMessage`` method payload, usable as a webhook response."""
        payload: Dict[str, Any] = {"method": "sendMessage", "chat_id": self.chat_id, "text": self.text}
        if self.parse_mode:
            payload["parse_mode"] = self.parse_mode
        if self.reply_markup:
            payload["reply_markup"] = self.reply_markup
        return payload


class Notification(BaseModel):
    """A message to deliver to someone other than the sender."""

    chat_id: int
    text: str


class HandledUpdate(BaseModel):
    reply: Optional[Reply] = None
    notifications: List[Notification] = Field(default_factory=list)


Message.model_rebuild()
