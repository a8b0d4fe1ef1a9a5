import asyncio
import itertools

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from repairshop.database import Base
from repairshop.domain.orders.codes import OrderCodeGenerator
from repairshop.domain.orders.exceptions import NotificationError
from repairshop.domain.orders.repository import ServiceOrderRepository
from repairshop.domain.orders.service import ServiceOrderService
from repairshop.models import Client, ClientAppliance, Technician
from repairshop.services.notification_service import NotificationDispatcher

OPERATOR_PHONE = "+584141112233"
ACTOR = "user-1"


class FakeChannel:
    """Records every send; can be told to fail or hang"""

    def __init__(self, name="fake", fail=False, delay=0.0, only_kind=None):
        self.name = name
        self.fail = fail
        self.delay = delay
        self.only_kind = only_kind
        self.sent = []

    def accepts(self, message):
        if self.only_kind is None:
            return True
        return message.attachment is not None and message.attachment.kind == self.only_kind

    async def send(self, phone, message):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise NotificationError(f"{self.name} is down")
        self.sent.append((phone, message.text))
        return {"status": "sent"}

    @property
    def phones(self):
        return [phone for phone, _ in self.sent]


class SleepRecorder(list):
    """Awaitable stand-in for asyncio.sleep that records each requested delay"""

    async def __call__(self, delay):
        self.append(delay)


async def no_sleep(delay):
    return None


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def notifier(channel):
    return NotificationDispatcher([channel], enabled=True, timeout=1.0)


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def code_generator(db, sleeps):
    counter = itertools.count(1)
    return OrderCodeGenerator(
        exists=lambda code: ServiceOrderRepository.order_code_exists(db, code),
        candidate_factory=lambda prefix: f"{prefix}261019{next(counter):04d}",
        sleep=sleeps,
    )


@pytest.fixture
def service(db, notifier, code_generator):
    return ServiceOrderService(
        db, notifier=notifier, code_generator=code_generator, operator_phone=OPERATOR_PHONE
    )


@pytest.fixture
def shop(db):
    """A client with WhatsApp, two appliances and two technicians"""
    client = Client(name="Maria Perez", phone="04141234567", whatsapp="04141234567")
    db.add(client)
    db.flush()
    fridge = ClientAppliance(
        client_id=client.id, name="RT38", brand="Samsung", appliance_type="Nevera"
    )
    washer = ClientAppliance(
        client_id=client.id, name="WM-10", brand="LG", appliance_type="Lavadora"
    )
    carlos = Technician(name="Carlos", phone="04165550000")
    luis = Technician(name="Luis", phone="04125550000")
    db.add_all([fridge, washer, carlos, luis])
    db.commit()
    return {
        "client": client,
        "fridge": fridge,
        "washer": washer,
        "carlos": carlos,
        "luis": luis,
    }


def run(coro):
    return asyncio.run(coro)
