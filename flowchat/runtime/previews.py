"""Staging area for attachments that have not been submitted yet.

Also holds the helpers that turn files, recordings and dropped links into
previews. Reading a file happens off the event loop so the user can keep
typing while large uploads are encoded.
"""

import asyncio
import base64
import mimetypes
from collections.abc import Callable
from pathlib import Path

from flowchat.conversation.models import AttachmentKind, Preview, UploadsConfig
from flowchat.exceptions import AttachmentRejectedError
from flowchat.observability.logging import get_logger
from flowchat.observability.metrics import ATTACHMENTS_REJECTED

logger = get_logger(__name__)

UPLOAD_REJECTED_MESSAGE = (
    "Cannot upload file. Kindly check the allowed file types and maximum allowed size."
)
AUDIO_PREVIEW_NAME = "audio.wav"

PreviewReleaser = Callable[[Preview], None]


def _no_release(_preview: Preview) -> None:
    return None


class PreviewManager:
    """Append-ordered list of staged previews.

    ``release`` frees the transient resource behind a preview's ``handle``
    and is called for every preview that leaves the list, whether it is
    removed, cleared or taken for submission.
    """

    def __init__(self, release: PreviewReleaser = _no_release) -> None:
        self._items: list[Preview] = []
        self._release = release
        self._listeners: list[Callable[[tuple[Preview, ...]], None]] = []

    def items(self) -> tuple[Preview, ...]:
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def subscribe(self, listener: Callable[[tuple[Preview, ...]], None]) -> None:
        self._listeners.append(listener)

    def add(self, *previews: Preview) -> None:
        if not previews:
            return
        self._items.extend(previews)
        self._notify()

    def remove_where(self, predicate: Callable[[Preview], bool]) -> list[Preview]:
        """Drop every preview matching ``predicate`` after releasing it."""
        removed = [item for item in self._items if predicate(item)]
        if not removed:
            return []
        for item in removed:
            self._release_one(item)
        self._items = [item for item in self._items if not predicate(item)]
        self._notify()
        return removed

    def remove(self, preview: Preview) -> bool:
        return bool(self.remove_where(lambda item: item is preview))

    def clear(self) -> None:
        if not self._items:
            return
        for item in self._items:
            self._release_one(item)
        self._items = []
        self._notify()

    def take(self) -> list[Preview]:
        """Snapshot and clear in one step, releasing every handle."""
        taken = list(self._items)
        self.clear()
        return taken

    @property
    def has_audio(self) -> bool:
        return any(item.kind == AttachmentKind.AUDIO for item in self._items)

    @property
    def audio_ready(self) -> bool:
        """True when only audio is staged, which triggers an automatic send."""
        return bool(self._items) and all(
            item.kind == AttachmentKind.AUDIO for item in self._items
        )

    def _release_one(self, item: Preview) -> None:
        if item.handle is not None:
            self._release(item)

    def _notify(self) -> None:
        snapshot = self.items()
        for listener in list(self._listeners):
            listener(snapshot)


def check_upload_allowed(mime: str, size: int, uploads: UploadsConfig | None) -> None:
    """Apply the flow's upload policy to one file.

    Raises:
        AttachmentRejectedError: if uploads are disabled or no rule accepts
            the MIME type at this size
    """
    accepted = False
    if uploads and uploads.is_image_upload_allowed:
        size_mb = size / 1024 / 1024
        accepted = any(
            mime in rule.file_types and size_mb <= rule.max_upload_size
            for rule in uploads.img_upload_size_and_types
        )
    if not accepted:
        ATTACHMENTS_REJECTED.labels(mime=mime or "unknown").inc()
        logger.info("attachment_rejected", mime=mime, size=size)
        raise AttachmentRejectedError(UPLOAD_REJECTED_MESSAGE, mime=mime, size=size)


def to_data_uri(content: bytes, mime: str) -> str:
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{mime or 'application/octet-stream'};base64,{encoded}"


async def read_file_preview(
    path: str | Path,
    uploads: UploadsConfig | None,
    mime: str | None = None,
) -> Preview:
    """Validate and read a file into a ``file`` preview.

    The preview handle is the file URI for images, mirroring the thumbnail a
    browser host would create; other files have no handle.
    """
    path = Path(path)
    mime = mime or mimetypes.guess_type(path.name)[0] or ""
    size = await asyncio.to_thread(lambda: path.stat().st_size)
    check_upload_allowed(mime, size, uploads)

    content = await asyncio.to_thread(path.read_bytes)
    handle = path.resolve().as_uri() if mime.startswith("image/") else None
    return Preview(
        data=to_data_uri(content, mime),
        mime=mime,
        name=path.name,
        kind=AttachmentKind.FILE,
        handle=handle,
    )


async def read_file_previews(
    paths: list[str | Path],
    uploads: UploadsConfig | None,
) -> list[Preview]:
    """Read several files concurrently.

    The whole batch is rejected if any file violates the upload policy.
    """
    for path in paths:
        path = Path(path)
        mime = mimetypes.guess_type(path.name)[0] or ""
        size = await asyncio.to_thread(lambda p=path: p.stat().st_size)
        check_upload_allowed(mime, size, uploads)
    return list(await asyncio.gather(*(read_file_preview(p, uploads) for p in paths)))


def audio_preview(content: bytes, mime: str) -> Preview:
    """Preview for a finished voice recording.

    Codec parameters after ``;`` are dropped from the MIME type.
    """
    base_mime = mime.split(";", 1)[0].strip()
    return Preview(
        data=to_data_uri(content, base_mime),
        mime=base_mime,
        name=AUDIO_PREVIEW_NAME,
        kind=AttachmentKind.AUDIO,
    )


def url_preview(url: str) -> Preview:
    """Preview for a dropped link, named after its last path segment."""
    return Preview(
        data=url,
        mime="",
        name=url[url.rfind("/") + 1:],
        kind=AttachmentKind.URL,
    )


def url_preview_from_html(html: str) -> Preview | None:
    """Preview for the first ``href="..."`` in a dropped HTML fragment."""
    index = html.find("href")
    if index == -1:
        return None
    start = html[index + 6:]
    end = start.find('"')
    href = start[:end] if end != -1 else start
    if not href:
        return None
    return url_preview(href)
