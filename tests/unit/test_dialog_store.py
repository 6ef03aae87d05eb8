from datetime import timedelta

from app.schemas.dialog import DialogState, Step
from app.services.dialog_store import DialogStore


async def test_round_trip(kv, clock):
    dialogs = DialogStore(kv)
    state = DialogState(step=Step.UPDATE_AWAIT_TEXT, report_id="4542")
    await dialogs.set(1001, state, clock())

    loaded = await dialogs.get(1001, clock())
    assert loaded.step == Step.UPDATE_AWAIT_TEXT
    assert loaded.report_id == "4542"
    assert loaded.expires_at == clock() + timedelta(minutes=30)


async def test_expiry_is_checked_on_read(kv, clock):
    dialogs = DialogStore(kv, ttl=timedelta(minutes=30))
    await dialogs.set(1001, DialogState(step=Step.NEW_ASSET), clock())

    assert await dialogs.get(1001, clock() + timedelta(minutes=29)) is not None
    assert await dialogs.get(1001, clock() + timedelta(minutes=30)) is None
    # expired record is gone, not just hidden
    assert await kv.get(("dialog", 1001)) is None


async def test_each_write_extends_expiry(kv, clock):
    dialogs = DialogStore(kv)
    await dialogs.set(1001, DialogState(step=Step.NEW_ASSET), clock())
    clock.advance(minutes=20)
    state = await dialogs.get(1001, clock())
    await dialogs.set(1001, state, clock())
    clock.advance(minutes=20)
    assert await dialogs.get(1001, clock()) is not None


async def test_clear(kv, clock):
    dialogs = DialogStore(kv)
    await dialogs.set(1001, DialogState(step=Step.NEW_ASSET), clock())
    await dialogs.clear(1001)
    assert await dialogs.get(1001, clock()) is None
