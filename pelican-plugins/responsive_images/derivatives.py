"""Source images and the resized derivatives generated from them.

Derivatives are named after the source they come from::

    media/images/tw-catgirl.jpg  ->  media-images-tw-catgirl.jpg@400px.webp

A derivative is only written again when its source has been modified since;
the modification time is the only invalidation signal, nothing is hashed.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os
import shutil
import tempfile
import threading
from typing import Dict, Optional

from PIL import Image as PILImage
import pillow_heif

from .exceptions import DerivativeError

pillow_heif.register_heif_opener()

logger = logging.getLogger(__name__)

# format name -> Pillow encoder
FORMATS = {'jpeg': 'JPEG', 'webp': 'WEBP'}
ALPHA_FORMATS = {'webp'}
DEFAULT_QUALITY = {'jpeg': 75, 'webp': 60}
MIME_TYPES = {'jpeg': 'image/jpeg', 'webp': 'image/webp'}
DERIVATIVE_MODE = 0o644


def normalise_format(fmt: str) -> str:
    fmt = fmt.lower().lstrip('.')
    return 'jpeg' if fmt == 'jpg' else fmt


def slugify_source(relative_path: str) -> str:
    return relative_path.replace('\\', '/').strip('/').replace('/', '-')


@dataclass(frozen=True)
class SourceImage:
    path: str
    relative_path: str
    width: int
    height: int
    format: str
    mtime: float
    has_alpha: bool
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @classmethod
    def read(cls, path: str, relative_path: str) -> 'SourceImage':
        """Read the intrinsic properties of an image without decoding it."""
        try:
            with PILImage.open(path) as image:
                width, height = image.size
                has_alpha = 'A' in image.getbands() or 'transparency' in image.info
                fmt = (image.format or '').lower()
        except OSError as e:
            raise DerivativeError(f"could not read image {path}: {e}", source=path) from e
        return cls(
            path=path,
            relative_path=relative_path,
            width=int(width),
            height=int(height),
            format=fmt,
            mtime=os.path.getmtime(path),
            has_alpha=has_alpha,
        )

    @property
    def aspect(self) -> float:
        return self.width / self.height

    def pixels(self) -> PILImage.Image:
        """The decoded image in RGB or RGBA mode, loaded once."""
        with self._lock:
            image = self.__dict__.get('_pixels')
            if image is None:
                with PILImage.open(self.path) as opened:
                    opened.load()
                    image = opened.convert('RGBA' if self.has_alpha else 'RGB')
                object.__setattr__(self, '_pixels', image)
            return image


def flatten(image: PILImage.Image, background_color=None) -> PILImage.Image:
    """Drop the alpha channel, compositing onto ``background_color`` if given."""
    if image.mode != 'RGBA':
        return image.convert('RGB')
    if background_color is None:
        return image.convert('RGB')
    background = PILImage.new('RGB', image.size, background_color)
    background.paste(image, mask=image.split()[3])
    return background


class DerivativeWriter:
    def __init__(self, directory: str):
        self.directory = directory
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, target: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(target, threading.Lock())

    def ensure_directory(self) -> None:
        os.makedirs(self.directory, exist_ok=True)

    def path_for(self, relative_path: str, width: int, fmt: str) -> str:
        name = f"{slugify_source(relative_path)}@{width}px.{normalise_format(fmt)}"
        return os.path.join(self.directory, name)

    @staticmethod
    def is_fresh(target: str, source_mtime: float) -> bool:
        return os.path.isfile(target) and os.path.getmtime(target) >= source_mtime

    def ensure(self, source: SourceImage, width, fmt: str, aspect: float,
               background_color=None, quality: Optional[int] = None) -> str:
        """Return the path of the derivative, writing it if missing or stale."""
        width = int(round(width))
        if width <= 0:
            raise DerivativeError(f"refusing to write a {width}px wide derivative", source=source.path)
        fmt = normalise_format(fmt)
        if fmt not in FORMATS:
            raise DerivativeError(f"unsupported derivative format [{fmt}]", source=source.path)

        target = self.path_for(source.relative_path, width, fmt)
        with self._lock_for(target):
            if self.is_fresh(target, source.mtime):
                logger.debug(f"responsive_images: reusing {target}")
                return target
            self.ensure_directory()
            height = max(int(round(width / aspect)), 1)
            logger.info(f"responsive_images: writing {target}")
            self.render_derivative(source, target, width, height, fmt, background_color, quality)
        return target

    def render_derivative(self, source: SourceImage, target: str, width: int, height: int,
                          fmt: str, background_color=None, quality: Optional[int] = None) -> None:
        """Scale, encode and atomically move a derivative into place."""
        tmp_path = None
        try:
            image = source.pixels().resize((width, height), PILImage.Resampling.LANCZOS)
            if fmt not in ALPHA_FORMATS and image.mode == 'RGBA':
                image = flatten(image, background_color)

            options = {'quality': quality or DEFAULT_QUALITY[fmt]}
            if fmt == 'jpeg':
                options['optimize'] = True

            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{os.path.basename(target)}.", suffix='.tmp', dir=os.path.dirname(target)
            )
            with os.fdopen(fd, 'wb') as fh:
                image.save(fh, FORMATS[fmt], **options)
            os.chmod(tmp_path, DERIVATIVE_MODE)
            os.replace(tmp_path, target)
        except (OSError, ValueError) as e:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise DerivativeError(
                f"could not write {target} from {source.path}: {e}", source=source.path, target=target
            ) from e

    def publish(self, destination: str) -> int:
        """Copy derivatives that are missing or outdated in ``destination``."""
        if not os.path.isdir(self.directory):
            return 0
        os.makedirs(destination, exist_ok=True)
        copied = 0
        for name in sorted(os.listdir(self.directory)):
            if name.startswith('.'):
                continue
            source = os.path.join(self.directory, name)
            target = os.path.join(destination, name)
            if not os.path.isfile(source):
                continue
            if os.path.isfile(target) and os.path.getmtime(target) >= os.path.getmtime(source):
                continue
            shutil.copy2(source, target)
            copied += 1
        logger.debug(f"responsive_images: published {copied} derivative(s) to {destination}")
        return copied
