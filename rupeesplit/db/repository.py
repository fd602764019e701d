from datetime import datetime
from urllib.parse import quote

from loguru import logger
from tinydb import Query, TinyDB

from rupeesplit.models.schemas import ExpenseCategory, ExpenseRecord, Participant

PARTICIPANTS_TABLE = "participants"
EXPENSES_TABLE = "expenses"


def avatar_url(seed: str) -> str:
    return f"https://picsum.photos/seed/{quote(seed, safe='')}/100/100"


class LedgerRepository:
    """Participants and expenses kept in two independent TinyDB tables.

    The roster and expense list are stored in insertion order and reloaded in
    the same order. Nothing derived (balances, settlements) is persisted.
    """

    def __init__(self, db: TinyDB | str = "rupee_split.json", current_user_id: str = "user-0"):
        self.db = TinyDB(db) if isinstance(db, str) else db
        self.participants = self.db.table(PARTICIPANTS_TABLE)
        self.expenses = self.db.table(EXPENSES_TABLE)
        self.current_user_id = current_user_id

    # -- participants ----------------------------------------------------

    def add_participant(self, name: str, id: str | None = None) -> Participant:
        name = name.strip()
        if not name:
            raise ValueError("Participant name must not be empty")

        fields = {"name": name, "avatar": avatar_url(name)}
        if id is not None:
            fields["id"] = id
        participant = Participant(**fields)

        if self.get_participant(participant.id) is not None:
            raise ValueError(f"Participant {participant.id} already exists")
        self.participants.insert(participant.model_dump(mode="json"))
        logger.debug("Stored participant {} ({})", participant.id, participant.name)
        return participant

    def get_participant(self, id: str) -> Participant | None:
        P = Query()
        doc = self.participants.get(P.id == id)
        if doc is None:
            return None
        return Participant(**doc)

    def find_participants(self, name: str) -> list[Participant]:
        """Case-insensitive substring search over participant names."""
        needle = name.strip().lower()
        return [p for p in self.list_participants() if needle and needle in p.name.lower()]

    def list_participants(self) -> list[Participant]:
        return [Participant(**doc) for doc in self.participants.all()]

    def remove_participant(self, id: str) -> bool:
        # Historical expenses keep referencing the id; balances ignore it
        P = Query()
        removed = self.participants.remove(P.id == id)
        return bool(removed)

    def ensure_current_user(self, name: str = "You") -> Participant:
        existing = self.get_participant(self.current_user_id)
        if existing is not None:
            return existing
        participant = Participant(id=self.current_user_id, name=name, avatar=avatar_url("me"))
        self.participants.insert(participant.model_dump(mode="json"))
        logger.info("Created current user {}", self.current_user_id)
        return participant

    # -- expenses --------------------------------------------------------

    def add_expense(self, record: ExpenseRecord) -> ExpenseRecord:
        if self.get_expense(record.id) is not None:
            raise ValueError(f"Expense {record.id} already exists")
        self.expenses.insert(record.model_dump(mode="json"))
        logger.debug("Stored expense {} ({})", record.id, record.amount)
        return record

    def get_expense(self, id: str) -> ExpenseRecord | None:
        E = Query()
        doc = self.expenses.get(E.id == id)
        if doc is None:
            return None
        return ExpenseRecord(**doc)

    def list_expenses(self, newest_first: bool = False) -> list[ExpenseRecord]:
        records = [ExpenseRecord(**doc) for doc in self.expenses.all()]
        if newest_first:
            records.sort(key=lambda e: e.date, reverse=True)
        return records

    def remove_expense(self, id: str) -> bool:
        E = Query()
        removed = self.expenses.remove(E.id == id)
        return bool(removed)

    # -- seeding ---------------------------------------------------------

    def is_empty(self) -> bool:
        return len(self.participants) == 0 and len(self.expenses) == 0

    def seed_defaults(self, current_user_name: str = "You") -> bool:
        """Load the demo roster and one demo expense into an empty store."""
        if not self.is_empty():
            return False

        me = self.ensure_current_user(current_user_name)
        rahul = self.add_participant("Rahul Sharma", id="f-1")
        priya = self.add_participant("Priya Singh", id="f-2")
        self.add_participant("Aniket Gupta", id="f-3")

        self.add_expense(
            ExpenseRecord(
                id="e-1",
                description="Dinner at Social",
                amount=2400,
                paid_by=me.id,
                split_with=[me.id, rahul.id, priya.id],
                date=datetime.now(),
                category=ExpenseCategory.FOOD,
            )
        )
        logger.info("Seeded demo participants and expenses")
        return True
