from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.config import Settings
from app.models import Base
from app.schemas.events import InboundEvent
from app.services.conversation import ConversationEngine
from app.services.kv_store import KVStore
from app.services.report_store import ReportStore

GROUP_ID = "-100200300"
USER_ID = 1001


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingNotifier:
    """Captures outbound traffic instead of calling Telegram."""

    def __init__(self):
        self.sent: list[tuple] = []      # (chat_id, text, keyboard)
        self.channel: list[tuple] = []   # (chat_id, text)
        self.copies: list[tuple] = []    # (to_chat, from_chat, message_id)
        self.answers: list[tuple] = []   # (callback_id, text)
        self.failing_users: set = set()

    async def send_to_user(self, user_id, text, keyboard=None):
        if user_id in self.failing_users:
            return False
        self.sent.append((user_id, text, keyboard))
        return True

    async def send_to_channel(self, chat_id, text):
        self.channel.append((chat_id, text))
        return True

    async def copy_message(self, to_chat, from_chat, message_id):
        self.copies.append((to_chat, from_chat, message_id))
        return True

    async def answer_callback(self, callback_id, text=None):
        self.answers.append((callback_id, text))
        return True

    @property
    def last_text(self) -> str:
        return self.sent[-1][1]


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def kv(session_factory, clock):
    return KVStore(session_factory, clock=clock)


@pytest.fixture
def store(kv):
    return ReportStore(kv)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def settings():
    return Settings(group_chat_id=GROUP_ID, default_reported_by="Dan Miller", cron_key="secret-key")


@pytest.fixture
def engine(kv, notifier, settings, clock):
    return ConversationEngine(kv, notifier, settings, clock=clock)


class Chat:
    """Drives the engine as a single private-chat user."""

    def __init__(self, engine: ConversationEngine, user_id: int = USER_ID):
        self.engine = engine
        self.user_id = user_id
        self._next_message_id = 1

    def _mid(self) -> int:
        self._next_message_id += 1
        return self._next_message_id

    async def say(self, text: str):
        await self.engine.handle_event(InboundEvent(
            user_id=self.user_id, chat_id=self.user_id, text=text, message_id=self._mid(),
        ))

    async def send_media(self) -> int:
        mid = self._mid()
        await self.engine.handle_event(InboundEvent(
            user_id=self.user_id, chat_id=self.user_id, message_id=mid, has_media=True,
        ))
        return mid

    async def tap(self, data: str):
        await self.engine.handle_event(InboundEvent(
            user_id=self.user_id, chat_id=self.user_id, callback_data=data, callback_id=f"cb-{self._mid()}",
        ))

    async def new_truck_report(self, number: str = "4542", side: str = "Truck",
                               problem: str = "brake fade", plan: str = "tow to shop"):
        await self.say("New report")
        await self.say("Truck")
        await self.say(number)
        await self.say(side)
        await self.say(problem)
        await self.say("Skip")
        await self.say(plan)
        await self.say("Dan Miller")
        await self.tap("new:post")


@pytest.fixture
def chat(engine):
    return Chat(engine)


@pytest.fixture
def make_chat(engine):
    def _make(user_id: int) -> Chat:
        return Chat(engine, user_id)
    return _make
