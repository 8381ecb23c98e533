"""Shared fixtures for the test suite."""

from datetime import datetime, timedelta, timezone

from domains.note_hub.core.models import Note

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock: each call advances by one second."""

    def __init__(self, start: datetime = EPOCH):
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now

    def rewind(self, seconds: int) -> None:
        self.now -= timedelta(seconds=seconds)


def make_note(note_id: str, title: str = "", content: str = "", minutes: int = 0, **kwargs) -> Note:
    stamp = EPOCH + timedelta(minutes=minutes)
    return Note(id=note_id, title=title, content=content, created_at=stamp, updated_at=stamp, **kwargs)
