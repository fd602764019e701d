import uuid
from datetime import datetime
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ExpenseCategory(str, Enum):
    FOOD = "Food"
    TRAVEL = "Travel"
    RENT = "Rent"
    ENTERTAINMENT = "Entertainment"
    SHOPPING = "Shopping"
    OTHERS = "Others"


DEFAULT_CATEGORY = ExpenseCategory.OTHERS


def coerce_category(value) -> ExpenseCategory:
    """Map a loosely typed category value onto the enum, falling back to Others."""
    if isinstance(value, ExpenseCategory):
        return value
    if isinstance(value, str):
        wanted = value.strip().lower()
        for category in ExpenseCategory:
            if category.value.lower() == wanted:
                return category
    return DEFAULT_CATEGORY


def _new_participant_id() -> str:
    return f"f-{uuid.uuid4().hex[:12]}"


def _new_expense_id() -> str:
    return f"e-{uuid.uuid4().hex[:12]}"


class Participant(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_participant_id)
    name: str
    avatar: str = ""


class ExpenseRecord(BaseModel):
    """A shared expense. Immutable once created; only whole-record deletion is supported."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_expense_id)
    description: str
    amount: float = Field(ge=0, allow_inf_nan=False)
    paid_by: str
    split_with: list[str] = Field(min_length=1)
    date: datetime = Field(default_factory=datetime.now)
    category: ExpenseCategory = DEFAULT_CATEGORY

    @field_validator("description")
    @classmethod
    def _description_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("description must not be empty")
        return value

    @field_validator("split_with")
    @classmethod
    def _dedupe_split(cls, value: list[str]) -> list[str]:
        # Keep first occurrence order
        return list(dict.fromkeys(value))

    @property
    def share(self) -> float:
        return self.amount / len(self.split_with)


class Settlement(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_id: str = Field(alias="from")
    to: str
    amount: float = Field(gt=0)


class ParsedExpense(BaseModel):
    """Best-effort structured guess returned by the LLM. Untrusted until validated here."""

    description: str
    amount: float = Field(ge=0, allow_inf_nan=False)
    category: ExpenseCategory = DEFAULT_CATEGORY
    mentioned_names: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("mentioned_names", "mentionedNames"),
    )

    @field_validator("description")
    @classmethod
    def _description_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("description must not be empty")
        return value

    @field_validator("category", mode="before")
    @classmethod
    def _known_category(cls, value) -> ExpenseCategory:
        return coerce_category(value)

    @field_validator("mentioned_names", mode="before")
    @classmethod
    def _clean_names(cls, value) -> list[str]:
        if not isinstance(value, list):
            return []
        return [v.strip() for v in value if isinstance(v, str) and v.strip()]


class ParseRequest(BaseModel):
    message: str


class ParseResponse(BaseModel):
    parsed: ParsedExpense | None = None
    split_with: list[str] = []


class CreateParticipantRequest(BaseModel):
    name: str


class CreateExpenseRequest(BaseModel):
    description: str
    amount: float
    paid_by: str
    split_with: list[str]
    category: ExpenseCategory = DEFAULT_CATEGORY


class DeletionCheck(BaseModel):
    participant_id: str
    balance: float
    requires_confirmation: bool


class Summary(BaseModel):
    total_owe: float
    total_owed: float
    net_balance: float
    category_totals: dict[ExpenseCategory, float]
    recent_expenses: list[ExpenseRecord]
