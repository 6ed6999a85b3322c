from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Protocol

from .api_client import AsyncGymApi, GymApiClient
from .assets import AssetPicker, AvatarApi, AvatarUploadPipeline
from .config import Settings
from .errors import NormalizedError, normalize_error
from .notifications import Notifier, error_notification, success_notification
from .session import Session
from .sync import FocusSyncedList, OnceFetch, SyncState
from .validation import PROFILE_RULES, FormState, FormValidator


logger = logging.getLogger(__name__)

GROUPS_FALLBACK_MESSAGE = "Could not load the muscle groups."
EXERCISES_FALLBACK_MESSAGE = "Could not load the exercises."
HISTORY_FALLBACK_MESSAGE = "Could not load the history."
PROFILE_FALLBACK_MESSAGE = "Could not update the profile. Try again later."
PROFILE_SUCCESS_MESSAGE = "Profile updated successfully!"


class ExerciseApi(Protocol):
    def list_groups(self) -> Awaitable[list[str]]: ...

    def list_exercises_by_group(self, group: str) -> Awaitable[list[dict[str, Any]]]: ...


class HistoryApi(Protocol):
    def list_history(self) -> Awaitable[list[dict[str, Any]]]: ...


class ProfileApi(AvatarApi, Protocol):
    def update_profile(self, payload: dict[str, Any]) -> Awaitable[None]: ...


@dataclass(frozen=True)
class Section:
    title: str
    data: tuple


def parse_sections(payload: Any) -> tuple[Section, ...]:
    if not isinstance(payload, list):
        raise TypeError("History payload must be a list of sections.")
    sections = []
    for entry in payload:
        if not isinstance(entry, dict):
            continue
        data = entry.get("data")
        sections.append(
            Section(
                title=str(entry.get("title") or ""),
                data=tuple(data) if isinstance(data, list) else (),
            )
        )
    return tuple(sections)


def _notify_error(notifier: Notifier):
    def show(error: NormalizedError) -> None:
        notifier.show(error_notification(error))

    return show


class ExercisesScreen:
    """Muscle-group tabs plus the exercises of the selected group."""

    def __init__(self, api: ExerciseApi, notifier: Notifier, *, default_group: str = "back"):
        self.api = api
        self.notifier = notifier
        self.groups = OnceFetch(
            api.list_groups,
            fallback_message=GROUPS_FALLBACK_MESSAGE,
            on_error=_notify_error(notifier),
            name="groups",
        )
        self.exercises: FocusSyncedList[str] = FocusSyncedList(
            api.list_exercises_by_group,
            fallback_message=EXERCISES_FALLBACK_MESSAGE,
            selection=default_group,
            on_error=_notify_error(notifier),
            name="exercises",
        )

    @property
    def selected_group(self) -> str | None:
        return self.exercises.selection

    @property
    def state(self) -> SyncState:
        return self.exercises.state

    @property
    def exercise_count(self) -> int:
        return len(self.exercises.state.items)

    def mount(self) -> None:
        self.groups.start()

    def on_visible(self) -> None:
        self.exercises.on_visible()

    def on_hidden(self) -> None:
        self.exercises.on_hidden()

    def select_group(self, group: str) -> None:
        self.exercises.select(group)

    def is_active(self, group: str) -> bool:
        selected = self.exercises.selection
        return selected is not None and selected.lower() == group.lower()

    async def wait_idle(self) -> None:
        await self.groups.wait_idle()
        await self.exercises.wait_idle()

    def unmount(self) -> None:
        self.groups.unmount()
        self.exercises.unmount()


class HistoryScreen:
    def __init__(self, api: HistoryApi, notifier: Notifier):
        self.api = api
        self.notifier = notifier
        self.history: FocusSyncedList[None] = FocusSyncedList(
            lambda _selection: api.list_history(),
            fallback_message=HISTORY_FALLBACK_MESSAGE,
            transform=parse_sections,
            on_error=_notify_error(notifier),
            name="history",
        )

    @property
    def state(self) -> SyncState:
        return self.history.state

    @property
    def is_empty(self) -> bool:
        return not self.history.state.loading and not self.history.state.items

    def on_visible(self) -> None:
        self.history.on_visible()

    def on_hidden(self) -> None:
        self.history.on_hidden()

    async def wait_idle(self) -> None:
        await self.history.wait_idle()

    def unmount(self) -> None:
        self.history.unmount()


class ProfileScreen:
    """Profile editor: name and password change plus photo upload."""

    def __init__(self, api: ProfileApi, session: Session, notifier: Notifier, picker: AssetPicker):
        self.api = api
        self.session = session
        self.notifier = notifier
        self.form = FormState(
            FormValidator(PROFILE_RULES),
            initial={"name": session.user.name, "email": session.user.email},
        )
        self.photo = AvatarUploadPipeline(api, session, picker, notifier)
        self.updating = False

    @property
    def photo_loading(self) -> bool:
        return self.photo.busy

    def avatar_url(self) -> str | None:
        return self.session.avatar_url()

    async def submit(self) -> bool:
        if self.updating:
            return False
        payload = self.form.submit()
        if payload is None:
            logger.debug("Profile form blocked by validation: %s", sorted(self.form.errors))
            return False

        body: dict[str, Any] = {"name": payload["name"]}
        if payload.get("password"):
            body["password"] = payload["password"]
            if payload.get("old_password") is not None:
                body["old_password"] = payload["old_password"]

        self.updating = True
        try:
            await self.api.update_profile(body)
        except Exception as exc:
            logger.warning("Profile update failed: %s", exc)
            self.notifier.show(error_notification(normalize_error(exc, PROFILE_FALLBACK_MESSAGE)))
            return False
        finally:
            self.updating = False

        self.session.update_user_profile(name=payload["name"])
        self.notifier.show(success_notification(PROFILE_SUCCESS_MESSAGE))
        return True

    async def change_photo(self) -> str | None:
        return await self.photo.run()


@dataclass(frozen=True)
class Screens:
    exercises: ExercisesScreen
    history: HistoryScreen
    profile: ProfileScreen


def build_screens(
    settings: Settings,
    session: Session,
    notifier: Notifier,
    picker: AssetPicker,
    *,
    http_session: Any = None,
) -> Screens:
    """Wire the screens to the configured API, authenticated as ``session``."""
    settings.validate()
    api = AsyncGymApi(GymApiClient(settings, token=session.token, session=http_session))
    logger.info("Screens bound to %s (default group %r).", settings.api_base_url, settings.default_group)
    return Screens(
        exercises=ExercisesScreen(api, notifier, default_group=settings.default_group),
        history=HistoryScreen(api, notifier),
        profile=ProfileScreen(api, session, notifier, picker),
    )
