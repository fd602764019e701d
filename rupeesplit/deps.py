from functools import lru_cache

from rupeesplit.config import get_settings
from rupeesplit.db.repository import LedgerRepository
from rupeesplit.llm.parser import ExpenseParser

settings = get_settings()


@lru_cache
def get_repo() -> LedgerRepository:
    return LedgerRepository(settings.db_path, current_user_id=settings.current_user_id)


@lru_cache
def get_parser() -> ExpenseParser:
    return ExpenseParser(api_key=settings.openrouter_api_key, model=settings.llm_model)
