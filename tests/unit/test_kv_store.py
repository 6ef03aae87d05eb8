from datetime import timedelta

from app.services.kv_store import decode_key, encode_key


async def test_set_get_delete(kv):
    await kv.set(("report", "4542"), {"id": "4542"})
    assert await kv.get(("report", "4542")) == {"id": "4542"}

    await kv.delete(("report", "4542"))
    assert await kv.get(("report", "4542")) is None


async def test_get_default_for_missing_key(kv):
    assert await kv.get(("index", "open"), []) == []


async def test_set_overwrites(kv):
    await kv.set(("index", "open"), ["a"])
    await kv.set(("index", "open"), ["a", "b"])
    assert await kv.get(("index", "open")) == ["a", "b"]


async def test_int_and_str_segments_are_distinct(kv):
    await kv.set(("dialog", 1001), {"step": "x"})
    assert await kv.get(("dialog", "1001")) is None
    assert await kv.get(("dialog", 1001)) == {"step": "x"}


async def test_entry_expires_after_ttl(kv, clock):
    await kv.set(("dialog", 7), {"step": "new:asset"}, ttl=timedelta(minutes=30))
    clock.advance(minutes=29)
    assert await kv.get(("dialog", 7)) is not None
    clock.advance(minutes=2)
    assert await kv.get(("dialog", 7)) is None


async def test_list_by_prefix_is_ordered(kv):
    await kv.set(("report", "b"), 2)
    await kv.set(("report", "a"), 1)
    await kv.set(("reports_archive", "z"), 3)
    await kv.set(("index", "open"), ["a"])

    items = await kv.list(("report",))
    assert items == [(("report", "a"), 1), (("report", "b"), 2)]


async def test_list_skips_expired(kv, clock):
    await kv.set(("dialog", 1), {}, ttl=timedelta(minutes=1))
    await kv.set(("dialog", 2), {})
    clock.advance(minutes=5)
    assert [k for k, _ in await kv.list(("dialog",))] == [("dialog", 2)]


async def test_purge_expired(kv, clock):
    await kv.set(("dialog", 1), {}, ttl=timedelta(minutes=1))
    await kv.set(("dialog", 2), {}, ttl=timedelta(hours=1))
    await kv.set(("report", "x"), {})
    clock.advance(minutes=10)

    assert await kv.purge_expired() == 1
    assert [k for k, _ in await kv.list()] == [("dialog", 2), ("report", "x")]


def test_key_encoding_round_trip():
    assert decode_key(encode_key(("dialog", 1001))) == ("dialog", 1001)
    assert decode_key(encode_key(("report", "4542-2"))) == ("report", "4542-2")
