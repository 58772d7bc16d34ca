"""
Message payloads exchanged with the WhatsApp client.
"""

import base64
import mimetypes
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

DEFAULT_MIMETYPE = "application/octet-stream"


@dataclass
class MessageMedia:
    """Binary content (base64 encoded) plus MIME type, filename and caption."""

    mimetype: str
    data: str
    filename: Optional[str] = None
    caption: Optional[str] = None

    @classmethod
    def from_file_path(cls, file_path: Union[str, Path]) -> "MessageMedia":
        """Read a file from disk; the MIME type is guessed from its extension."""
        path = Path(file_path)
        if not path.is_file():
            raise FileNotFoundError(f"Media file not found: {path}")

        mimetype, _ = mimetypes.guess_type(path.name)
        data = base64.b64encode(path.read_bytes()).decode("ascii")
        return cls(mimetype=mimetype or DEFAULT_MIMETYPE, data=data, filename=path.name)

    @property
    def size(self) -> int:
        """Decoded size in bytes."""
        return len(self.to_bytes())

    def to_bytes(self) -> bytes:
        data = self.data
        # Accept data URLs ("data:image/png;base64,....")
        if data.startswith("data:") and "," in data:
            data = data.split(",", 1)[1]
        return base64.b64decode(data)

    def default_filename(self) -> str:
        if self.filename:
            return self.filename
        extension = mimetypes.guess_extension(self.mimetype) or ""
        return f"media{extension}"

    def write_temp_file(self, directory: Optional[Union[str, Path]] = None) -> Path:
        """
        Write the decoded bytes to a new temp file and return its path.
        The browser's file input needs a real path on disk.
        The caller deletes the file.
        """
        filename = self.default_filename()
        suffix = Path(filename).suffix
        stem = Path(filename).stem or "media"
        fd, name = tempfile.mkstemp(prefix=f"{stem}-", suffix=suffix, dir=directory)
        with os.fdopen(fd, "wb") as f:
            f.write(self.to_bytes())
        return Path(name)


@dataclass
class SentMessage:
    """Descriptor of a message accepted by WhatsApp Web."""

    id: str
    chat_id: str
    body: str = ""
    has_media: bool = False
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class IncomingMessage:
    """A message read from an unread chat."""

    id: str
    chat_id: str
    body: Optional[str]
    chat_name: Optional[str] = None
    author: Optional[str] = None
    has_media: bool = False
    media_type: Optional[str] = None
    received_at: datetime = field(default_factory=datetime.now)
