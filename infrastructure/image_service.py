"""Image decoding, thumbnailing and transient display handles.

Thumbnails are produced with Pillow (decode, orientation fix, aspect-preserving
downscale, lossy JPEG re-encode). Full-resolution views keep the exact source
bytes; both tiers are exposed to the UI through `DisplayHandle` objects that
must be invalidated explicitly when no longer needed.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
import io
from typing import Any

from PIL import Image, ImageOps, features
from PySide6.QtGui import QImage
from loguru import logger

from core.errors import CapabilityUnsupportedError

TIER_THUMBNAIL = "thumbnail"
TIER_FULL = "full"

DEFAULT_THUMB_SIDE = 200
DEFAULT_THUMB_QUALITY = 50


def check_capabilities() -> None:
    """Raise `CapabilityUnsupportedError` if thumbnails cannot be encoded."""
    if not features.check_codec("jpg"):
        raise CapabilityUnsupportedError("Pillow was built without JPEG support")


def _pil_to_qimage(pil_img: Any) -> QImage | None:
    """Convert a Pillow image to `QImage` and detach from the source buffer."""
    try:
        mode = pil_img.mode
        if mode not in ("RGBA", "RGB"):
            pil_img = pil_img.convert("RGBA")
            mode = pil_img.mode
        if mode == "RGB":
            data = pil_img.tobytes("raw", "RGB")
            qimg = QImage(
                data, pil_img.width, pil_img.height, pil_img.width * 3, QImage.Format_RGB888
            )
        else:
            data = pil_img.tobytes("raw", "RGBA")
            qimg = QImage(
                data, pil_img.width, pil_img.height, pil_img.width * 4, QImage.Format_RGBA8888
            )
        if qimg.isNull():
            return None
        return qimg.copy()
    except (ValueError, TypeError) as ex:
        logger.debug("PIL->QImage convert failed: {}", ex)
        return None


class DisplayHandle:
    """Transient, in-memory handle to displayable image bytes.

    The handle owns its bytes until `invalidate()` is called; afterwards
    `data` is None and `to_qimage()` returns a null image.
    """

    def __init__(self, identity: str, tier: str, data: bytes, registry: HandleRegistry) -> None:
        self.identity = identity
        self.tier = tier
        self._data: bytes | None = data
        self._registry = registry
        registry.register(self)

    @property
    def data(self) -> bytes | None:
        return self._data

    @property
    def is_valid(self) -> bool:
        return self._data is not None

    def to_qimage(self) -> QImage:
        """Decode the bytes for display (Qt first, Pillow for formats Qt lacks)."""
        if self._data is None:
            return QImage()
        img = QImage.fromData(self._data)
        if not img.isNull():
            return img
        try:
            with Image.open(io.BytesIO(self._data)) as im:
                converted = _pil_to_qimage(ImageOps.exif_transpose(im))
        except (OSError, ValueError) as ex:
            logger.debug("Pillow decode failed for {}: {}", self.identity, ex)
            return QImage()
        return converted if converted is not None else QImage()

    def invalidate(self) -> None:
        if self._data is None:
            return
        self._data = None
        self._registry.unregister(self)

    def __repr__(self) -> str:
        state = "live" if self.is_valid else "released"
        return f"DisplayHandle({self.identity[:8]}, {self.tier}, {state})"


class HandleRegistry:
    """Tracks every live display handle so teardown can release them all."""

    def __init__(self) -> None:
        self._live: dict[int, DisplayHandle] = {}

    def register(self, handle: DisplayHandle) -> None:
        self._live[id(handle)] = handle

    def unregister(self, handle: DisplayHandle) -> None:
        self._live.pop(id(handle), None)

    def live_count(self, tier: str | None = None) -> int:
        if tier is None:
            return len(self._live)
        return sum(1 for h in self._live.values() if h.tier == tier)

    def invalidate_all(self) -> int:
        """Invalidate every live handle and return how many were released."""
        handles = list(self._live.values())
        for h in handles:
            h.invalidate()
        return len(handles)


@dataclass
class _MemCacheItem:
    key: str
    handle: DisplayHandle


class LRUCache:
    def __init__(
        self, capacity: int, on_evict: Callable[[DisplayHandle], None] | None = None
    ) -> None:
        self._cap = max(1, int(capacity or 1))
        self._data: OrderedDict[str, _MemCacheItem] = OrderedDict()
        self._on_evict = on_evict

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: str) -> DisplayHandle | None:
        """Return cached handle for key, moving it to the MRU position."""
        item = self._data.get(key)
        if not item:
            return None
        self._data.move_to_end(key)
        return item.handle

    def put(self, key: str, handle: DisplayHandle) -> None:
        """Insert or update `key`, evicting LRU entries when over capacity."""
        old = self._data.get(key)
        if old is not None and old.handle is not handle:
            self._evict(old)
        self._data[key] = _MemCacheItem(key, handle)
        self._data.move_to_end(key)
        while len(self._data) > self._cap:
            _, item = self._data.popitem(last=False)
            self._evict(item)

    def clear(self) -> None:
        items = list(self._data.values())
        self._data.clear()
        for item in items:
            self._evict(item)

    def _evict(self, item: _MemCacheItem) -> None:
        if self._on_evict is not None:
            self._on_evict(item.handle)


class ImageService:
    """Thumbnail encoder configured from settings."""

    def __init__(self, settings: object | None = None) -> None:
        self.max_side = DEFAULT_THUMB_SIDE
        self.quality = DEFAULT_THUMB_QUALITY
        if settings is not None:
            try:
                self.max_side = int(settings.get("thumbnails.max_side", self.max_side))
                self.quality = int(settings.get("thumbnails.quality", self.quality))
            except (ValueError, TypeError):
                logger.warning("Invalid thumbnail settings, using defaults")
        self.max_side = max(16, self.max_side)
        self.quality = min(95, max(1, self.quality))

    def create_thumbnail(self, data: bytes) -> bytes:
        """Return a JPEG thumbnail of `data` whose larger side is <= `max_side`.

        Raises:
            OSError: If the bytes cannot be decoded (includes
                `PIL.UnidentifiedImageError`).
            ValueError: For malformed image data.
        """
        side = self.max_side
        with Image.open(io.BytesIO(data)) as src:
            # JPEG-only fast path: decode at a reduced scale
            src.draft("RGB", (side, side))
            im = ImageOps.exif_transpose(src)
            im.thumbnail((side, side), Image.Resampling.LANCZOS)
            if im.mode in ("RGBA", "LA") or (im.mode == "P" and "transparency" in im.info):
                rgba = im.convert("RGBA")
                im = Image.new("RGB", rgba.size, (255, 255, 255))
                im.paste(rgba, mask=rgba.getchannel("A"))
            elif im.mode != "RGB":
                im = im.convert("RGB")
            out = io.BytesIO()
            im.save(out, "JPEG", quality=self.quality)
        return out.getvalue()
