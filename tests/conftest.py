import pytest

from accounts.services import reset_otp_sessions
from orders.repository import OrderRepository
from orders.store import get_document_store, reset_document_store
from tests.factories import FakeClock


@pytest.fixture(autouse=True)
def store(settings):
    settings.ORDER_STORE_BACKEND = 'memory'
    settings.ADMIN_AUTH_REQUIRED = False
    settings.ORDER_AUTO_DELETE_DELAY_SECONDS = 30
    reset_document_store()
    reset_otp_sessions()
    yield get_document_store()
    reset_document_store()
    reset_otp_sessions()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repository(store, clock):
    return OrderRepository(store=store, clock=clock)
