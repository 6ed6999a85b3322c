import asyncio
import json
import unittest

import requests

from gymsync.assets import AssetDescriptor
from gymsync.config import Settings
from gymsync.errors import DomainError, TransportError
from gymsync.notifications import COLOR_SUCCESS, RecordingNotifier
from gymsync.screens import (
    EXERCISES_FALLBACK_MESSAGE,
    GROUPS_FALLBACK_MESSAGE,
    HISTORY_FALLBACK_MESSAGE,
    PROFILE_FALLBACK_MESSAGE,
    PROFILE_SUCCESS_MESSAGE,
    ExercisesScreen,
    HistoryScreen,
    ProfileScreen,
    Section,
    build_screens,
    parse_sections,
)
from gymsync.session import Session, UserProfile


class _FakeGymApi:
    def __init__(self):
        self.calls = []
        self.groups = ["back", "shoulders"]
        self.exercises = {
            "back": [{"id": "1", "name": "Lat pulldown"}],
            "shoulders": [{"id": "5", "name": "Overhead press"}],
        }
        self.history = [{"title": "11.01.2023", "data": [{"id": "h1", "name": "Lat pulldown"}]}]
        self.errors = {}
        self.avatar_reference = "f00-ana.png"

    def _maybe_fail(self, name):
        error = self.errors.get(name)
        if error is not None:
            raise error

    async def list_groups(self):
        self.calls.append(("list_groups",))
        self._maybe_fail("list_groups")
        return list(self.groups)

    async def list_exercises_by_group(self, group):
        self.calls.append(("list_exercises_by_group", group))
        self._maybe_fail("list_exercises_by_group")
        return list(self.exercises.get(group, []))

    async def list_history(self):
        self.calls.append(("list_history",))
        self._maybe_fail("list_history")
        return list(self.history)

    async def update_profile(self, payload):
        self.calls.append(("update_profile", payload))
        self._maybe_fail("update_profile")

    async def upload_avatar(self, *, path, filename, content_type, field="avatar"):
        self.calls.append(("upload_avatar", filename, content_type, field))
        self._maybe_fail("upload_avatar")
        return self.avatar_reference


class _FakePicker:
    def __init__(self, descriptor):
        self.descriptor = descriptor

    async def pick(self):
        return self.descriptor


class TestExercisesScreen(unittest.IsolatedAsyncioTestCase):
    async def test_mount_and_focus_load_groups_and_default_group(self) -> None:
        api = _FakeGymApi()
        screen = ExercisesScreen(api, RecordingNotifier(), default_group="back")
        screen.mount()
        screen.mount()
        screen.on_visible()
        await screen.wait_idle()

        self.assertEqual(screen.groups.state.items, ("back", "shoulders"))
        self.assertEqual(screen.state.items, ({"id": "1", "name": "Lat pulldown"},))
        self.assertEqual(screen.exercise_count, 1)
        self.assertEqual(api.calls.count(("list_groups",)), 1)

    async def test_group_change_refetches_exercises_only(self) -> None:
        api = _FakeGymApi()
        screen = ExercisesScreen(api, RecordingNotifier(), default_group="back")
        screen.mount()
        screen.on_visible()
        await screen.wait_idle()

        screen.select_group("shoulders")
        await screen.wait_idle()

        self.assertTrue(screen.is_active("Shoulders"))
        self.assertEqual(screen.state.items, ({"id": "5", "name": "Overhead press"},))
        self.assertEqual(api.calls.count(("list_groups",)), 1)

    async def test_failures_notify_with_their_own_fallbacks(self) -> None:
        api = _FakeGymApi()
        api.errors["list_groups"] = TransportError("offline")
        api.errors["list_exercises_by_group"] = RuntimeError("boom")
        notifier = RecordingNotifier()
        screen = ExercisesScreen(api, notifier)
        screen.mount()
        screen.on_visible()
        await screen.wait_idle()

        self.assertCountEqual(notifier.titles, [GROUPS_FALLBACK_MESSAGE, EXERCISES_FALLBACK_MESSAGE])
        self.assertFalse(screen.state.loading)
        screen.unmount()


class TestHistoryScreen(unittest.IsolatedAsyncioTestCase):
    async def test_loads_sections(self) -> None:
        api = _FakeGymApi()
        screen = HistoryScreen(api, RecordingNotifier())
        screen.on_visible()
        await screen.wait_idle()

        self.assertEqual(
            screen.state.items,
            (Section(title="11.01.2023", data=({"id": "h1", "name": "Lat pulldown"},)),),
        )
        self.assertFalse(screen.is_empty)

    async def test_empty_history(self) -> None:
        api = _FakeGymApi()
        api.history = []
        screen = HistoryScreen(api, RecordingNotifier())
        screen.on_visible()
        await screen.wait_idle()
        self.assertTrue(screen.is_empty)

    async def test_failure_keeps_previous_sections(self) -> None:
        api = _FakeGymApi()
        notifier = RecordingNotifier()
        screen = HistoryScreen(api, notifier)
        screen.on_visible()
        await screen.wait_idle()

        api.errors["list_history"] = TransportError("timeout")
        screen.on_hidden()
        screen.on_visible()
        await screen.wait_idle()

        self.assertEqual(len(screen.state.items), 1)
        self.assertEqual(notifier.titles, [HISTORY_FALLBACK_MESSAGE])

    def test_parse_sections_skips_malformed_entries(self) -> None:
        sections = parse_sections([{"title": "12.01.2023", "data": None}, "junk"])
        self.assertEqual(sections, (Section(title="12.01.2023", data=()),))


class TestProfileScreen(unittest.IsolatedAsyncioTestCase):
    def _screen(self, api=None, descriptor=None):
        session = Session(UserProfile(id="1", name="Ana", email="ana@example.com"), base_url="http://gym.local")
        notifier = RecordingNotifier()
        screen = ProfileScreen(api or _FakeGymApi(), session, notifier, _FakePicker(descriptor))
        return screen, session, notifier

    async def test_invalid_form_never_reaches_the_server(self) -> None:
        api = _FakeGymApi()
        screen, session, notifier = self._screen(api)
        screen.form.set("password", "abcdef")
        screen.form.set("confirm_password", "xyzxyz")

        self.assertFalse(await screen.submit())
        self.assertEqual(api.calls, [])
        self.assertEqual(screen.form.error_for("confirm_password"), "Password confirmation does not match.")
        self.assertEqual(notifier.shown, [])

    async def test_successful_update_merges_name_after_server_ack(self) -> None:
        api = _FakeGymApi()
        screen, session, notifier = self._screen(api)
        screen.form.set("name", "Ana Paula")
        screen.form.set("old_password", "123456")
        screen.form.set("password", "abcdef")
        screen.form.set("confirm_password", "abcdef")

        self.assertTrue(await screen.submit())

        self.assertEqual(
            api.calls,
            [("update_profile", {"name": "Ana Paula", "password": "abcdef", "old_password": "123456"})],
        )
        self.assertEqual(session.user.name, "Ana Paula")
        self.assertEqual(notifier.titles, [PROFILE_SUCCESS_MESSAGE])
        self.assertEqual(notifier.shown[0].bg_color, COLOR_SUCCESS)
        self.assertFalse(screen.updating)

    async def test_name_only_update_omits_password_fields(self) -> None:
        api = _FakeGymApi()
        screen, session, notifier = self._screen(api)
        screen.form.set("password", "")
        screen.form.set("confirm_password", "")

        self.assertTrue(await screen.submit())
        self.assertEqual(api.calls, [("update_profile", {"name": "Ana"})])

    async def test_domain_error_message_is_shown_and_profile_untouched(self) -> None:
        api = _FakeGymApi()
        api.errors["update_profile"] = DomainError("The old password does not match.", status_code=400)
        screen, session, notifier = self._screen(api)
        screen.form.set("name", "Someone Else")

        self.assertFalse(await screen.submit())
        self.assertEqual(session.user.name, "Ana")
        self.assertEqual(notifier.titles, ["The old password does not match."])
        self.assertFalse(screen.updating)

    async def test_transport_error_uses_profile_fallback(self) -> None:
        api = _FakeGymApi()
        api.errors["update_profile"] = TransportError("timeout")
        screen, session, notifier = self._screen(api)

        self.assertFalse(await screen.submit())
        self.assertEqual(notifier.titles, [PROFILE_FALLBACK_MESSAGE])

    async def test_change_photo_updates_avatar_url(self) -> None:
        api = _FakeGymApi()
        descriptor = AssetDescriptor(uri="file:///tmp/me.png", declared_size=1024)
        screen, session, notifier = self._screen(api, descriptor)
        self.assertIsNone(screen.avatar_url())

        self.assertEqual(await screen.change_photo(), "f00-ana.png")
        self.assertEqual(screen.avatar_url(), "http://gym.local/avatar/f00-ana.png")
        self.assertIn(("upload_avatar", "ana.png", "image/png", "avatar"), api.calls)
        self.assertFalse(screen.photo_loading)

    async def test_new_password_without_old_password_omits_the_key(self) -> None:
        api = _FakeGymApi()
        screen, session, notifier = self._screen(api)
        screen.form.set("old_password", "")
        screen.form.set("password", "abcdef")
        screen.form.set("confirm_password", "abcdef")

        self.assertTrue(await screen.submit())
        self.assertEqual(api.calls, [("update_profile", {"name": "Ana", "password": "abcdef"})])

    async def test_overlapping_submit_sends_one_request(self) -> None:
        release = asyncio.Event()

        class _SlowApi(_FakeGymApi):
            async def update_profile(self, payload):
                self.calls.append(("update_profile", payload))
                await release.wait()

        api = _SlowApi()
        screen, session, notifier = self._screen(api)
        first = asyncio.create_task(screen.submit())
        await asyncio.sleep(0)
        self.assertTrue(screen.updating)

        self.assertFalse(await screen.submit())
        release.set()
        self.assertTrue(await first)
        self.assertEqual(len(api.calls), 1)
        self.assertEqual(notifier.titles, [PROFILE_SUCCESS_MESSAGE])


def _json_response(payload):
    response = requests.Response()
    response.status_code = 200
    response._content = json.dumps(payload).encode("utf-8")
    return response


class _RecordingHttpSession:
    def __init__(self, payloads):
        self.payloads = payloads
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        for suffix, payload in self.payloads.items():
            if url.endswith(suffix):
                return _json_response(payload)
        return _json_response([])


class TestBuildScreens(unittest.IsolatedAsyncioTestCase):
    def _settings(self, **overrides):
        env = {"API_BASE_URL": "http://gym.local:3333", "API_TOKEN": "settings-token", "DEFAULT_GROUP": "shoulders"}
        env.update(overrides)
        return Settings.from_env(getenv=env.get)

    async def test_session_token_and_default_group_drive_first_fetch(self) -> None:
        http = _RecordingHttpSession({"/exercises/bygroup/shoulders": [{"id": "5", "name": "Overhead press"}]})
        session = Session(UserProfile(id="1", name="Ana", email="ana@example.com"), token="session-token")
        screens = build_screens(self._settings(), session, RecordingNotifier(), _FakePicker(None), http_session=http)

        screens.exercises.on_visible()
        await screens.exercises.wait_idle()

        self.assertEqual(screens.exercises.selected_group, "shoulders")
        self.assertEqual(http.calls[0]["url"], "http://gym.local:3333/exercises/bygroup/shoulders")
        self.assertEqual(http.calls[0]["headers"]["Authorization"], "Bearer session-token")
        self.assertEqual(screens.exercises.state.items, ({"id": "5", "name": "Overhead press"},))
        self.assertIs(screens.profile.session, session)

    def test_missing_base_url_is_rejected(self) -> None:
        session = Session(UserProfile(id="1", name="Ana", email="ana@example.com"), token="session-token")
        with self.assertRaises(ValueError):
            build_screens(self._settings(API_BASE_URL=""), session, RecordingNotifier(), _FakePicker(None))


if __name__ == "__main__":
    unittest.main()
