"""
Avatar file storage.

Avatars live in one flat directory, one file per owner id named
``<owner_id>.<ext>``. Uploads are always stored as ``<owner_id>.webp``, but
files left behind under older extensions are still found by ``probe``.

``replace`` deletes the previous file before writing the new one and the two
steps are not atomic: a crash in between leaves the owner without an avatar
until the next upload. Concurrent uploads for one owner id are not serialized.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from aur.im.accounts.errors import ImageError, InvalidIdentifier, StorageError
from aur.im.accounts.image.codec import (
    DEFAULT_QUALITY,
    ImageFormat,
    detect_format,
    transcode_to_webp,
)

logger = logging.getLogger(__name__)

OWNER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

# Probe order; the first existing file wins.
AVATAR_EXTENSIONS: List[str] = ["png", "jpg", "jpeg", "gif", "bmp", "webp"]

EXTENSION_MEDIA_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "webp": "image/webp",
}

CANONICAL_EXTENSION = "webp"


@dataclass(frozen=True)
class AvatarFile:
    path: Path
    media_type: str


def validate_owner_id(owner_id: str) -> str:
    if not isinstance(owner_id, str) or OWNER_ID_PATTERN.fullmatch(owner_id) is None:
        raise InvalidIdentifier.owner_id()
    return owner_id


class AvatarResolver:
    """
    Locates, loads and replaces avatar files under a storage directory.

    Args:
        directory: Directory holding ``<owner_id>.<ext>`` files
        quality: WebP quality passed through to the codec
    """

    def __init__(self, directory: Union[str, Path], quality: float = DEFAULT_QUALITY):
        self.directory = Path(directory)
        self.quality = quality

    def probe(self, owner_id: str) -> Optional[AvatarFile]:
        """
        Find an existing avatar file for an owner id.

        The owner id is validated before any filesystem access.

        Raises:
            InvalidIdentifier: owner id contains characters other than letters,
                digits, underscore and hyphen
        """
        validate_owner_id(owner_id)

        for ext in AVATAR_EXTENSIONS:
            candidate = self.directory / f"{owner_id}.{ext}"
            if candidate.is_file():
                return AvatarFile(path=candidate, media_type=EXTENSION_MEDIA_TYPES[ext])
        return None

    def existing(self, owner_id: str) -> List[AvatarFile]:
        """
        List every avatar file present for an owner id, in probe order.
        """
        validate_owner_id(owner_id)

        found = []
        for ext in AVATAR_EXTENSIONS:
            candidate = self.directory / f"{owner_id}.{ext}"
            if candidate.is_file():
                found.append(
                    AvatarFile(path=candidate, media_type=EXTENSION_MEDIA_TYPES[ext])
                )
        return found

    def canonical_path(self, owner_id: str) -> Path:
        return self.directory / f"{validate_owner_id(owner_id)}.{CANONICAL_EXTENSION}"

    def replace(self, owner_id: str, raw: bytes) -> Path:
        """
        Store a newly uploaded avatar as the owner's single WebP file.

        1. Delete every avatar file found by probing, under any extension.
        2. Detect the upload's format from its magic bytes.
        3. Transcode it to WebP unless it already is WebP.
        4. Write ``<owner_id>.webp``.

        Raises:
            InvalidIdentifier: unsafe owner id
            StorageError: the previous file could not be deleted, or the new
                file could not be written
            ImageError: the upload is not a recognised or decodable image
        """
        for previous in self.existing(owner_id):
            try:
                previous.path.unlink()
            except FileNotFoundError:
                # Removed by a concurrent upload; the outcome is the same.
                logger.warning("Avatar %s vanished before delete", previous.path)
            except OSError:
                logger.exception("Failed to delete avatar %s", previous.path)
                raise StorageError.delete_failed(str(previous.path))

        fmt = detect_format(raw)
        if fmt is None:
            raise ImageError.unrecognized_format()

        if fmt is not ImageFormat.WEBP:
            raw = transcode_to_webp(raw, fmt, self.quality)

        target = self.canonical_path(owner_id)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            target.write_bytes(raw)
        except OSError:
            logger.exception("Failed to write avatar %s", target)
            raise StorageError.write_failed(str(target))

        logger.info("Stored avatar for %s at %s", owner_id, target)
        return target

    def load(self, owner_id: str) -> Optional[bytes]:
        """
        Read an owner's avatar as WebP bytes.

        Files stored under a legacy extension are transcoded on the fly.

        Returns:
            WebP bytes, or None if the owner has no avatar
        """
        avatar = self.probe(owner_id)
        if avatar is None:
            return None

        try:
            data = avatar.path.read_bytes()
        except OSError:
            logger.exception("Failed to read avatar %s", avatar.path)
            raise StorageError.read_failed(str(avatar.path))

        fmt = detect_format(data)
        if fmt is None:
            raise ImageError.unrecognized_format()
        if fmt is ImageFormat.WEBP:
            return data
        return transcode_to_webp(data, fmt, self.quality)
