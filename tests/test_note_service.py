import asyncio
import tempfile
import threading
import unittest
from pathlib import Path
from unittest import mock

from domains.core.exceptions import NoteNotFoundError, PersistenceError
from domains.note_hub.core.store import NoteStore
from domains.note_hub.services.events import ChangeAction, EventType, NotificationHub
from domains.note_hub.services.note_service import NoteService


class NoteServiceTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.hub = NotificationHub()
        self.service = NoteService(NoteStore(Path(self._tmp.name)), self.hub)
        self.events = self.hub.subscribe("test")

    async def asyncTearDown(self):
        self.service.close()
        self._tmp.cleanup()

    def drain(self) -> list:
        events = []
        while (event := self.events.get_nowait()) is not None:
            events.append(event)
        return events


class TestEventsPublishedByMutations(NoteServiceTestCase):
    async def test_each_mutation_publishes_one_event(self):
        note = await self.service.create_note("n", "body")
        await self.service.update_note(note.id, content="changed")
        await self.service.update_note(note.id, position_x=250)
        await self.service.toggle_pinned(note.id)
        await self.service.toggle_hidden(note.id)
        await self.service.delete_note(note.id)
        await self.service.restore_note(note.id)
        await self.service.delete_note(note.id)
        await self.service.purge_note(note.id)

        self.assertEqual(
            [(e.note_id, e.action) for e in self.drain()],
            [
                (note.id, ChangeAction.CREATED),
                (note.id, ChangeAction.UPDATED),
                (note.id, ChangeAction.UPDATED),
                (note.id, ChangeAction.PINNED),
                (note.id, ChangeAction.HIDDEN),
                (note.id, ChangeAction.DELETED),
                (note.id, ChangeAction.RESTORED),
                (note.id, ChangeAction.DELETED),
                (note.id, ChangeAction.PURGED),
            ],
        )

    async def test_no_op_update_publishes_nothing(self):
        note = await self.service.create_note("same", "same")
        self.drain()

        result = await self.service.update_note(note.id, title="same", content="same")

        self.assertEqual(result, note)
        self.assertEqual(self.drain(), [])

    async def test_flag_change_through_update_is_classified(self):
        note = await self.service.create_note("n")
        self.drain()
        await self.service.update_note(note.id, is_hidden=True)
        self.assertEqual([e.action for e in self.drain()], [ChangeAction.HIDDEN])

    async def test_unhide_all_publishes_per_note(self):
        a = await self.service.create_note("a")
        b = await self.service.create_note("b")
        await self.service.toggle_hidden(a.id)
        await self.service.toggle_hidden(b.id)
        self.drain()

        self.assertEqual(await self.service.unhide_all(), 2)
        events = self.drain()
        self.assertEqual({e.note_id for e in events}, {a.id, b.id})
        self.assertTrue(all(e.action == ChangeAction.HIDDEN for e in events))

    async def test_large_unhide_all_publishes_one_list_reload(self):
        notes = [await self.service.create_note(f"n{i}") for i in range(3)]
        for note in notes:
            await self.service.toggle_hidden(note.id)
        self.drain()

        with mock.patch("domains.note_hub.services.note_service.BULK_EVENT_LIMIT", 2):
            self.assertEqual(await self.service.unhide_all(), 3)

        events = self.drain()
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].type, EventType.NOTES_INVALIDATED)
        self.assertEqual(events[0].root, str(self.service.root))
        self.assertTrue(events[0].requires_list_reload)
        self.assertFalse(self.events.closed)

    async def test_failed_mutation_publishes_nothing(self):
        note = await self.service.create_note("n")
        self.drain()
        with mock.patch.object(
            self.service.store._storage, "save_active", side_effect=PersistenceError("notes.json", "full")
        ):
            with self.assertRaises(PersistenceError):
                await self.service.update_note(note.id, title="changed")
        self.assertEqual(self.drain(), [])

    async def test_missing_note_raises(self):
        with self.assertRaises(NoteNotFoundError):
            await self.service.update_note("missing", title="x")
        self.assertEqual(self.drain(), [])


class TestConcurrentWriters(NoteServiceTestCase):
    async def test_concurrent_updates_are_serialized(self):
        note = await self.service.create_note("n")
        self.drain()

        results = await asyncio.gather(
            *(self.service.update_note(note.id, content=f"version {i}") for i in range(20))
        )

        events = self.drain()
        self.assertEqual(len(events), 20)
        self.assertTrue(all(e.note_id == note.id for e in events))

        stamps = [r.updated_at for r in results]
        self.assertEqual(stamps, sorted(stamps))
        # 最后完成的写入决定最终状态
        final = await self.service.get_note(note.id)
        self.assertEqual(final.content, results[-1].content)

    async def test_reads_see_whole_snapshots(self):
        notes = [await self.service.create_note(f"n{i}") for i in range(5)]

        async def delete_all():
            for n in notes:
                await self.service.delete_note(n.id)

        async def read_counts():
            counts = []
            for _ in range(20):
                stats = await self.service.get_stats()
                counts.append(stats["active"] + stats["trashed"])
                await asyncio.sleep(0)
            return counts

        _, counts = await asyncio.gather(delete_all(), read_counts())
        self.assertTrue(all(c == 5 for c in counts))


class TestCancelledWrites(NoteServiceTestCase):
    async def test_cancelled_caller_still_finishes_write_and_publishes(self):
        note = await self.service.create_note("n", "a")
        self.drain()

        storage = self.service.store._storage
        original_save = storage.save_active
        entered = threading.Event()
        gate = threading.Event()

        def gated_save(notes):
            entered.set()
            gate.wait(5)
            original_save(notes)

        with mock.patch.object(storage, "save_active", side_effect=gated_save):
            task = asyncio.create_task(self.service.update_note(note.id, content="b"))
            self.assertTrue(await asyncio.to_thread(entered.wait, 5))

            task.cancel()
            with self.assertRaises(asyncio.CancelledError):
                await task
            # 写入还在进行，锁不能提前释放
            self.assertTrue(self.service.write_lock.locked())

            gate.set()
            event = await self.events.get(timeout=5)

        self.assertEqual((event.note_id, event.action), (note.id, ChangeAction.UPDATED))
        async with self.service.write_lock:
            pass
        self.assertEqual((await self.service.get_note(note.id)).content, "b")

    async def test_cancel_while_waiting_for_lock_skips_the_write(self):
        note = await self.service.create_note("n", "a")
        self.drain()

        await self.service.write_lock.acquire()
        task = asyncio.create_task(self.service.update_note(note.id, content="never"))
        await asyncio.sleep(0)
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task
        self.service.write_lock.release()

        self.assertEqual((await self.service.get_note(note.id)).content, "a")
        self.assertEqual(self.drain(), [])


if __name__ == "__main__":
    unittest.main(verbosity=2)
