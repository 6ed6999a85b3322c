from __future__ import annotations

import inspect
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Protocol, Union
from urllib.parse import unquote, urlparse

from .errors import ConstraintRejection, normalize_error
from .notifications import Notifier, error_notification, success_notification
from .session import Session


logger = logging.getLogger(__name__)

MAX_ASSET_BYTES = 5 * 1024 * 1024
ASSET_TOO_LARGE_MESSAGE = "This image is too large. Choose one up to 5MB."
UPLOAD_FALLBACK_MESSAGE = "Could not update the photo."
UPLOAD_SUCCESS_MESSAGE = "Photo updated!"
DEFAULT_MIME_HINT = "image"


@dataclass(frozen=True)
class AssetDescriptor:
    uri: str
    declared_size: int | None
    mime_hint: str = DEFAULT_MIME_HINT


@dataclass(frozen=True)
class SizeCheck:
    ok: bool
    reason: str | None = None


@dataclass(frozen=True)
class PackagedAsset:
    filename: str
    content_type: str
    path: Path


def validate_size(descriptor: AssetDescriptor, *, max_bytes: int = MAX_ASSET_BYTES) -> SizeCheck:
    # Unknown or zero size passes; the server still enforces its own limit.
    if descriptor.declared_size and descriptor.declared_size > max_bytes:
        return SizeCheck(ok=False, reason=ASSET_TOO_LARGE_MESSAGE)
    return SizeCheck(ok=True)


def local_path(uri: str) -> Path:
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return Path(uri)


def file_extension(uri: str) -> str:
    name = urlparse(uri).path.rsplit("/", 1)[-1] or uri
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1]


def package_asset(descriptor: AssetDescriptor, owner_name: str) -> PackagedAsset:
    extension = file_extension(descriptor.uri)
    if not extension:
        raise ConstraintRejection("The selected file has no extension.")
    return PackagedAsset(
        filename=f"{owner_name}.{extension}".lower(),
        content_type=f"{descriptor.mime_hint}/{extension}",
        path=local_path(descriptor.uri),
    )


class AssetPicker(Protocol):
    def pick(self) -> Awaitable[AssetDescriptor | None]: ...


Chooser = Callable[[], Union[str, os.PathLike, None, Awaitable[Union[str, os.PathLike, None]]]]


class FileAssetPicker:
    """Picks a local file through ``choose``; ``None`` from it means cancelled."""

    def __init__(self, choose: Chooser, *, mime_hint: str = DEFAULT_MIME_HINT):
        self.choose = choose
        self.mime_hint = mime_hint

    async def pick(self) -> AssetDescriptor | None:
        chosen = self.choose()
        if inspect.isawaitable(chosen):
            chosen = await chosen
        if chosen is None:
            return None
        path = Path(chosen)
        size = path.stat().st_size
        return AssetDescriptor(uri=path.as_uri() if path.is_absolute() else str(path), declared_size=size, mime_hint=self.mime_hint)


class AvatarApi(Protocol):
    async def upload_avatar(self, *, path: Path, filename: str, content_type: str, field: str = "avatar") -> str: ...


class AvatarUploadPipeline:
    """Select, constrain, package and upload a profile photo.

    The session profile only changes after the server has returned the new
    avatar reference.
    """

    def __init__(self, api: AvatarApi, session: Session, picker: AssetPicker, notifier: Notifier):
        self.api = api
        self.session = session
        self.picker = picker
        self.notifier = notifier
        self.busy = False

    async def select(self) -> AssetDescriptor | None:
        try:
            return await self.picker.pick()
        except Exception as exc:
            logger.warning("Asset selection failed: %s", exc)
            return None

    def validate_size(self, descriptor: AssetDescriptor) -> SizeCheck:
        return validate_size(descriptor)

    async def upload(self, descriptor: AssetDescriptor, target_field: str = "avatar") -> str:
        packaged = package_asset(descriptor, self.session.user.name)
        logger.info("Uploading %s as %s (%s).", target_field, packaged.filename, packaged.content_type)
        return await self.api.upload_avatar(
            path=packaged.path,
            filename=packaged.filename,
            content_type=packaged.content_type,
            field=target_field,
        )

    async def run(self) -> str | None:
        if self.busy:
            logger.debug("Avatar upload already in progress; ignoring.")
            return None
        self.busy = True
        try:
            descriptor = await self.select()
            if descriptor is None:
                return None

            check = self.validate_size(descriptor)
            if not check.ok:
                logger.info("Rejected %s: %s bytes.", descriptor.uri, descriptor.declared_size)
                self.notifier.show(error_notification(check.reason or ASSET_TOO_LARGE_MESSAGE))
                return None

            try:
                reference = await self.upload(descriptor)
            except ConstraintRejection as exc:
                self.notifier.show(error_notification(exc.reason))
                return None
            except Exception as exc:
                logger.warning("Avatar upload failed: %s", exc)
                self.notifier.show(error_notification(normalize_error(exc, UPLOAD_FALLBACK_MESSAGE)))
                return None

            self.session.update_user_profile(avatar=reference)
            self.notifier.show(success_notification(UPLOAD_SUCCESS_MESSAGE))
            return reference
        finally:
            self.busy = False
