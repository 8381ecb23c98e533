import asyncio
import tempfile
import unittest
from pathlib import Path

from domains.core.exceptions import StoreClosedError, StoreLockedError
from domains.note_hub.core.store import NoteStore
from domains.note_hub.services import (
    EventType,
    NotificationHub,
    RootLifecycleManager,
    SurfaceSession,
)
from domains.settings_hub import UserConfigManager


async def wait_until(predicate, timeout: float = 2.0) -> bool:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            return False
        await asyncio.sleep(0.01)
    return True


class RootManagerTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.app_dir = Path(self._tmp.name) / "app"
        self.app_dir.mkdir()
        self.hub = NotificationHub()
        self.manager = RootLifecycleManager(UserConfigManager(self.app_dir), self.hub)
        self.manager.start()

    async def asyncTearDown(self):
        await self.manager.shutdown()
        self._tmp.cleanup()

    def open_root(self, root: Path) -> list:
        store = NoteStore(root)
        try:
            return store.list_notes(include_hidden=True)
        finally:
            store.close()


class TestSwitchRoot(RootManagerTestCase):
    async def test_default_root_is_data_dir_under_app_dir(self):
        self.assertEqual(self.manager.root, (self.app_dir / "data").resolve())

    async def test_switch_rebuilds_store_and_invalidates(self):
        old_service = self.manager.service
        note = await old_service.create_note("in old root")
        events = self.hub.subscribe("main")

        new_root = Path(self._tmp.name) / "elsewhere"
        new_service = await self.manager.switch_root(new_root)

        self.assertIsNot(new_service, old_service)
        self.assertEqual(await new_service.get_notes(), [])
        event = await events.get(timeout=1)
        self.assertEqual(event.type, EventType.NOTES_INVALIDATED)
        self.assertEqual(event.root, str(new_root.resolve()))

        with self.assertRaises(StoreClosedError):
            await old_service.get_notes()

        # 旧目录的数据原样保留，不会被复制或清空
        self.assertEqual([n.id for n in self.open_root(old_service.root)], [note.id])
        self.assertFalse((new_root / "notes.json").exists())

    async def test_switch_to_same_root_is_a_no_op(self):
        service = self.manager.service
        self.assertIs(await self.manager.switch_root(service.root), service)

    async def test_failed_switch_keeps_old_root(self):
        locked_root = Path(self._tmp.name) / "locked"
        holder = NoteStore(locked_root)
        try:
            old_service = self.manager.service
            with self.assertRaises(StoreLockedError):
                await self.manager.switch_root(locked_root)
            self.assertIs(self.manager.service, old_service)
            await old_service.create_note("still works")
        finally:
            holder.close()

    async def test_no_reopen_after_shutdown(self):
        await self.manager.shutdown()
        self.assertFalse(self.manager.started)
        with self.assertRaises(StoreClosedError):
            self.manager.service
        with self.assertRaises(StoreClosedError):
            await self.manager.switch_root(Path(self._tmp.name) / "late")
        self.assertFalse(self.manager.started)
        self.assertFalse((Path(self._tmp.name) / "late").exists())

    async def test_switch_waits_for_in_flight_mutation(self):
        service = self.manager.service
        create = asyncio.create_task(service.create_note("racing"))
        await asyncio.sleep(0)
        await self.manager.switch_root(Path(self._tmp.name) / "next")

        note = await create
        self.assertIn(note.id, [n.id for n in self.open_root(service.root)])


class TestApplySettings(RootManagerTestCase):
    async def test_data_path_change_switches_root(self):
        target = Path(self._tmp.name) / "moved"
        config = await self.manager.apply_settings({"data_path": str(target)})

        self.assertEqual(config.data_path, str(target))
        self.assertEqual(self.manager.root, target.resolve())

    async def test_other_settings_keep_the_store(self):
        service = self.manager.service
        await self.manager.apply_settings({"font_size": 20})
        self.assertIs(self.manager.service, service)

    async def test_failed_switch_rolls_back_data_path(self):
        locked_root = Path(self._tmp.name) / "locked"
        holder = NoteStore(locked_root)
        try:
            with self.assertRaises(StoreLockedError):
                await self.manager.apply_settings({"data_path": str(locked_root)})
        finally:
            holder.close()
        self.assertEqual(self.manager.config_manager.get_config().data_path, "./data")

    async def test_reset_settings_returns_to_default_root(self):
        await self.manager.apply_settings({"data_path": str(Path(self._tmp.name) / "moved")})
        await self.manager.reset_settings()
        self.assertEqual(self.manager.root, (self.app_dir / "data").resolve())

    async def test_failed_reset_restores_previous_settings(self):
        other = Path(self._tmp.name) / "other"
        await self.manager.apply_settings({"data_path": str(other), "font_size": 20})
        holder = NoteStore(self.app_dir / "data")
        try:
            with self.assertRaises(StoreLockedError):
                await self.manager.reset_settings()
        finally:
            holder.close()

        config = self.manager.config_manager.get_config()
        self.assertEqual((config.data_path, config.font_size), (str(other), 20))
        self.assertEqual(self.manager.config_manager.get_data_dir().resolve(), self.manager.root)
        self.assertEqual(self.manager.root, other.resolve())

        # 重启后读取到的仍是当前使用的目录
        reloaded = UserConfigManager(self.app_dir)
        self.assertEqual(reloaded.get_data_dir().resolve(), other.resolve())


class TestSurfaceSession(RootManagerTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.session = SurfaceSession(self.manager, name="main")

    async def asyncTearDown(self):
        await self.session.close()
        await super().asyncTearDown()

    async def test_request_surface(self):
        note = await self.session.create_note("Hello", "world")
        updated = await self.session.update_note(note.id, {"position_x": 40, "width": 500})
        self.assertEqual((updated.position_x, updated.width), (40, 500))

        self.assertEqual(await self.session.toggle_hidden(note.id), {"is_hidden": True})
        self.assertEqual(await self.session.get_notes(), [])
        self.assertEqual(await self.session.unhide_all(), {"count": 1})
        self.assertEqual(await self.session.toggle_pinned(note.id), {"is_pinned": True})

        hits = await self.session.search_notes("WORLD")
        self.assertEqual([h.note.id for h in hits], [note.id])

        await self.session.delete_note(note.id)
        self.assertEqual([n.id for n in await self.session.list_trash()], [note.id])
        await self.session.restore(note.id)
        self.assertEqual((await self.session.get_note(note.id)).title, "Hello")

    async def test_requests_follow_root_switch(self):
        await self.session.create_note("old")
        await self.manager.switch_root(Path(self._tmp.name) / "new")
        self.assertEqual(await self.session.get_notes(), [])

    async def test_events_subscription(self):
        events = self.session.events()
        note = await self.session.create_note("n")
        event = await events.get(timeout=1)
        self.assertEqual(event.note_id, note.id)

    async def test_closed_session_unsubscribes(self):
        self.session.events()
        self.assertEqual(self.hub.subscriber_count, 1)
        await self.session.close()
        self.assertEqual(self.hub.subscriber_count, 0)
        self.assertTrue(self.session.closed)


class TestAutoSave(RootManagerTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.session = SurfaceSession(self.manager, name="editor")
        self.note = await self.session.create_note("draft", "v0")

    async def asyncTearDown(self):
        await self.session.close()
        await super().asyncTearDown()

    async def test_saves_only_when_draft_changes(self):
        saver = self.session.start_autosave(interval=0.02)
        await self.session.set_draft(self.note.id, "draft", "v1")

        self.assertTrue(await wait_until(lambda: saver.save_count == 1))
        self.assertEqual((await self.session.get_note(self.note.id)).content, "v1")

        await asyncio.sleep(0.1)
        self.assertEqual(saver.save_count, 1)
        self.assertFalse(saver.dirty)

    async def test_unchanged_draft_does_not_touch_the_note(self):
        saver = self.session.start_autosave(interval=0.02)
        saver.load(self.note)
        await asyncio.sleep(0.1)
        self.assertEqual(saver.save_count, 0)
        self.assertEqual(await self.session.get_note(self.note.id), self.note)

    async def test_close_flushes_pending_draft(self):
        self.session.start_autosave(interval=3600)
        await self.session.set_draft(self.note.id, "draft", "typed before closing")
        await self.session.close()

        note = await self.manager.service.get_note(self.note.id)
        self.assertEqual(note.content, "typed before closing")

    async def test_switching_notes_flushes_previous_draft(self):
        other = await self.session.create_note("other")
        self.session.start_autosave(interval=3600)
        await self.session.set_draft(self.note.id, "draft", "first note edit")
        await self.session.set_draft(other.id, "other", "second note edit")

        self.assertEqual((await self.session.get_note(self.note.id)).content, "first note edit")
        self.assertEqual((await self.session.get_note(other.id)).content, "")

    async def test_root_switch_stops_autosave_after_flushing(self):
        old_root = self.manager.root
        saver = self.session.start_autosave(interval=3600)
        await self.session.set_draft(self.note.id, "draft", "saved into old root")

        await self.manager.switch_root(Path(self._tmp.name) / "new")

        self.assertTrue(saver.stopped)
        self.assertFalse(saver.running)
        self.assertEqual(self.open_root(old_root)[0].content, "saved into old root")

        # 新草稿绑定到新目录的 Service
        fresh = await self.session.create_note("fresh")
        await self.session.set_draft(fresh.id, "fresh", "new root edit")
        self.assertIsNot(self.session.autosaver, saver)
        self.assertIs(self.session.autosaver.service, self.manager.service)


if __name__ == "__main__":
    unittest.main(verbosity=2)
