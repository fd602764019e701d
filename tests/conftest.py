from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from tinydb import TinyDB
from tinydb.storages import MemoryStorage

from rupeesplit.db.repository import LedgerRepository
from rupeesplit.deps import get_parser, get_repo
from rupeesplit.llm.parser import ExpenseParser
from rupeesplit.models.schemas import Participant

ME = "user-0"


class FakeCompletions:
    """Stands in for ``client.chat.completions``; replays a canned reply or raises."""

    def __init__(self, reply: str | None = None, error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_parser(reply: str | None = None, error: Exception | None = None) -> ExpenseParser:
    completions = FakeCompletions(reply, error)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return ExpenseParser(api_key="test", model="test-model", client=client)


@pytest.fixture
def you():
    return Participant(id=ME, name="You")


@pytest.fixture
def rahul():
    return Participant(id="f-1", name="Rahul Sharma")


@pytest.fixture
def priya():
    return Participant(id="f-2", name="Priya Singh")


@pytest.fixture
def repo():
    return LedgerRepository(TinyDB(storage=MemoryStorage), current_user_id=ME)


@pytest.fixture
def seeded_repo(repo):
    repo.seed_defaults()
    return repo


@pytest.fixture
def client(seeded_repo):
    from main import app

    app.dependency_overrides[get_repo] = lambda: seeded_repo
    app.dependency_overrides[get_parser] = lambda: make_parser(error=RuntimeError("offline"))
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def parser_factory():
    return make_parser
