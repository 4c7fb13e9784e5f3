"""Pydantic models for the chat path.

ChatTurn and ChatThreadInfo are read models over the ORM rows in
``src.db.models``. TranscriptMessage is the live, possibly still-growing
view of a message that the StreamReconciler observes.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ChatRole = Literal["user", "assistant", "system"]


class FileAttachment(BaseModel):
    """File attached to a user message.

    ``data`` carries base64 content for inline files; ``url`` points at
    object storage once the file has been uploaded.
    """

    id: str
    name: str
    type: str = Field(default="file", description="'image' or 'file'")
    size: int = 0
    data: Optional[str] = None
    url: Optional[str] = None
    mime_type: str = "application/octet-stream"
    file_path: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return self.type == "image" or self.mime_type.startswith("image/")


class ChatTurn(BaseModel):
    """A persisted chat message."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    thread_id: str
    user_id: str
    role: ChatRole
    content: str
    attachments: list[FileAttachment] = Field(default_factory=list)
    created_at: str


class ChatThreadInfo(BaseModel):
    """A persisted chat thread."""

    model_config = ConfigDict(from_attributes=True)

    thread_id: str
    user_id: str
    title: str
    created_at: str
    updated_at: str
    message_count: int = 0


class SaveMessageRequest(BaseModel):
    """Input to Message Persistence ``save_message``."""

    thread_id: str
    user_id: str
    role: ChatRole
    content: str
    attachments: list[FileAttachment] = Field(default_factory=list)


class CreateThreadRequest(BaseModel):
    user_id: str
    title: Optional[str] = None


class TranscriptMessage(BaseModel):
    """One entry of the in-memory transcript fed to the reconciler.

    ``id`` is whatever the streaming transport assigned and may be reused
    or regenerated, so it is never used for deduplication.
    """

    id: str = ""
    role: ChatRole
    content: str
    attachments: list[FileAttachment] = Field(default_factory=list)
