from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from pydantic import ValidationError

from rupeesplit.config import get_settings
from rupeesplit.core.balances import (
    category_totals,
    compute_balances,
    recent_expenses,
    requires_confirmation,
    simplify_debts,
    total_owed_by_user,
    total_owed_to_user,
)
from rupeesplit.db.repository import LedgerRepository
from rupeesplit.deps import get_parser, get_repo
from rupeesplit.formatting import format_currency
from rupeesplit.llm.parser import ExpenseParser, suggest_split
from rupeesplit.models.schemas import (
    CreateExpenseRequest,
    CreateParticipantRequest,
    DeletionCheck,
    ExpenseRecord,
    Participant,
    ParseRequest,
    ParseResponse,
    Settlement,
    Summary,
)

router = APIRouter()
settings = get_settings()


def _balances(repo: LedgerRepository) -> dict[str, float]:
    return compute_balances(repo.list_participants(), repo.list_expenses(), repo.current_user_id)


@router.post("/parse", response_model=ParseResponse)
def parse_message(
    request: ParseRequest,
    repo: LedgerRepository = Depends(get_repo),
    parser: ExpenseParser = Depends(get_parser),
):
    logger.info("Parsing message: {}", request.message)
    parsed = parser.parse(request.message)
    participants = repo.list_participants()
    return ParseResponse(
        parsed=parsed,
        split_with=suggest_split(parsed, participants, repo.current_user_id),
    )


# -- participants ------------------------------------------------------------


@router.get("/participants", response_model=list[Participant])
def list_participants(repo: LedgerRepository = Depends(get_repo)):
    return repo.list_participants()


@router.post("/participants", response_model=Participant, status_code=201)
def create_participant(request: CreateParticipantRequest, repo: LedgerRepository = Depends(get_repo)):
    try:
        created = repo.add_participant(request.name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info("Added participant {} ({})", created.id, created.name)
    return created


@router.get("/participants/{participant_id}/deletion-check", response_model=DeletionCheck)
def check_participant_deletion(participant_id: str, repo: LedgerRepository = Depends(get_repo)):
    if repo.get_participant(participant_id) is None:
        raise HTTPException(status_code=404, detail="Participant not found")
    balances = _balances(repo)
    return DeletionCheck(
        participant_id=participant_id,
        balance=balances.get(participant_id, 0.0),
        requires_confirmation=requires_confirmation(
            balances, participant_id, settings.delete_epsilon
        ),
    )


@router.delete("/participants/{participant_id}")
def delete_participant(
    participant_id: str,
    confirm: bool = False,
    repo: LedgerRepository = Depends(get_repo),
):
    if participant_id == repo.current_user_id:
        raise HTTPException(status_code=400, detail="The current user cannot be removed")
    if repo.get_participant(participant_id) is None:
        raise HTTPException(status_code=404, detail="Participant not found")

    balances = _balances(repo)
    if not confirm and requires_confirmation(balances, participant_id, settings.delete_epsilon):
        pending = abs(balances[participant_id])
        raise HTTPException(
            status_code=409,
            detail=(
                f"This friend has a pending balance of {format_currency(pending)}. "
                "Retry with confirm=true to delete anyway."
            ),
        )

    repo.remove_participant(participant_id)
    logger.info("Removed participant {}", participant_id)
    return {"detail": "Participant deleted"}


# -- expenses ----------------------------------------------------------------


@router.get("/expenses", response_model=list[ExpenseRecord])
def list_expenses(repo: LedgerRepository = Depends(get_repo)):
    return repo.list_expenses(newest_first=True)


@router.post("/expenses", response_model=ExpenseRecord, status_code=201)
def create_expense(request: CreateExpenseRequest, repo: LedgerRepository = Depends(get_repo)):
    try:
        record = ExpenseRecord(**request.model_dump())
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=[err["msg"] for err in e.errors()])

    known = {p.id for p in repo.list_participants()}
    unknown = [pid for pid in [record.paid_by, *record.split_with] if pid not in known]
    if unknown:
        raise HTTPException(
            status_code=400, detail=f"Unknown participant(s): {', '.join(dict.fromkeys(unknown))}"
        )

    try:
        created = repo.add_expense(record)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info("Added expense {} of {}", created.id, format_currency(created.amount))
    return created


@router.delete("/expenses/{expense_id}")
def delete_expense(expense_id: str, repo: LedgerRepository = Depends(get_repo)):
    if not repo.remove_expense(expense_id):
        raise HTTPException(status_code=404, detail="Expense not found")
    logger.info("Deleted expense {}", expense_id)
    return {"detail": "Expense deleted"}


# -- derived views -----------------------------------------------------------


@router.get("/balances", response_model=dict[str, float])
def get_balances(repo: LedgerRepository = Depends(get_repo)):
    return _balances(repo)


@router.get("/settlements", response_model=list[Settlement])
def get_settlements(repo: LedgerRepository = Depends(get_repo)):
    return simplify_debts(_balances(repo), repo.current_user_id)


@router.get("/summary", response_model=Summary)
def get_summary(repo: LedgerRepository = Depends(get_repo)):
    balances = _balances(repo)
    expenses = repo.list_expenses()
    owe = total_owed_by_user(balances)
    owed = total_owed_to_user(balances)
    return Summary(
        total_owe=owe,
        total_owed=owed,
        net_balance=owed - owe,
        category_totals=category_totals(expenses),
        recent_expenses=recent_expenses(expenses),
    )
