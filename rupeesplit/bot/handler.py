from loguru import logger
from pydantic import ValidationError
from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)
from telegram.helpers import escape_markdown

from rupeesplit.config import get_settings
from rupeesplit.core.balances import (
    compute_balances,
    requires_confirmation,
    simplify_debts,
    total_owed_by_user,
    total_owed_to_user,
)
from rupeesplit.db.repository import LedgerRepository
from rupeesplit.deps import get_parser, get_repo
from rupeesplit.formatting import format_currency
from rupeesplit.llm.parser import suggest_split
from rupeesplit.models.schemas import ExpenseRecord, Participant

settings = get_settings()

RECENT_EXPENSES = 10


def _md(text: str) -> str:
    """Escape user-supplied text for Markdown replies."""
    return escape_markdown(text, version=1)


def _balances(repo: LedgerRepository) -> dict[str, float]:
    return compute_balances(repo.list_participants(), repo.list_expenses(), repo.current_user_id)


def _names(repo: LedgerRepository) -> dict[str, str]:
    names = {p.id: p.name for p in repo.list_participants()}
    names[repo.current_user_id] = settings.current_user_name
    return names


def _balance_summary(repo: LedgerRepository) -> str:
    """Per-friend balances plus totals, as Markdown."""
    balances = _balances(repo)
    if not balances:
        return "No friends yet. Add one with /add\\_friend <name>."

    names = _names(repo)
    settlements = simplify_debts(balances, repo.current_user_id)
    if not settlements:
        return "You're all settled up!"

    lines = ["*Balances:*\n"]
    for s in settlements:
        if s.from_id == repo.current_user_id:
            lines.append(f"• You owe *{_md(names[s.to])}* {format_currency(s.amount)}")
        else:
            lines.append(f"• *{_md(names[s.from_id])}* owes you {format_currency(s.amount)}")

    owe = total_owed_by_user(balances)
    owed = total_owed_to_user(balances)
    lines.append("")
    lines.append(f"_You owe: {format_currency(owe)}_")
    lines.append(f"_You are owed: {format_currency(owed)}_")
    lines.append(f"*Net: {format_currency(owed - owe)}*")
    return "\n".join(lines)


def _expense_line(exp: ExpenseRecord, names: dict[str, str]) -> str:
    payer = _md(names.get(exp.paid_by, "Someone"))
    return (
        f"*{_md(exp.description)}* — {format_currency(exp.amount)} "
        f"({exp.category.value}), paid by {payer}"
    )


def _expense_preview(pending: dict, participants: list[Participant], current_user_id: str) -> str:
    names = {p.id: p.name for p in participants}
    names[current_user_id] = settings.current_user_name
    split = ", ".join(names.get(pid, pid) for pid in pending["split_with"])
    share = pending["amount"] / len(pending["split_with"])
    return (
        f"{pending['description']}: {format_currency(pending['amount'])} "
        f"({pending['category']}), paid by you.\n"
        f"Split with: {split} ({format_currency(share)} each).\n"
        "Should I add this?"
    )


def _yes_no(yes_data: str, no_data: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton("Yes ✓", callback_data=yes_data),
                InlineKeyboardButton("No ✗", callback_data=no_data),
            ]
        ]
    )


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /start command."""
    await update.message.reply_text(
        "Hey! I'm RupeeSplit.\n\n"
        "Describe a shared expense you paid for and I'll split it for you.\n\n"
        "Examples:\n"
        '• "Dinner with Rahul and Priya, 3200"\n'
        '• "Cab to airport 850 with Aniket"\n\n'
        "Commands:\n"
        "/balances — Who owes whom\n"
        "/friends — List friends\n"
        "/expenses — Recent expenses\n"
        "/add_friend <name> — Add a friend\n"
        "/remove <name> — Remove a friend\n"
        "/help — Show this message"
    )


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /help command."""
    await start_command(update, context)


async def balances_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /balances command."""
    await update.message.reply_text(_balance_summary(get_repo()), parse_mode="Markdown")


async def friends_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /friends command."""
    repo = get_repo()
    friends = [p for p in repo.list_participants() if p.id != repo.current_user_id]
    if not friends:
        await update.message.reply_text("No friends yet.")
        return
    lines = ["*Friends:*\n"] + [f"{i}. {_md(p.name)}" for i, p in enumerate(friends, 1)]
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


async def expenses_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /expenses command."""
    repo = get_repo()
    expenses = repo.list_expenses(newest_first=True)[:RECENT_EXPENSES]
    if not expenses:
        await update.message.reply_text("No expenses yet.")
        return
    names = _names(repo)
    lines = ["*Recent expenses:*\n"]
    for i, exp in enumerate(expenses, 1):
        lines.append(f"{i}. {_expense_line(exp, names)}")
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


async def add_friend_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /add_friend <name>."""
    name = " ".join(context.args or []).strip()
    if not name:
        await update.message.reply_text("Usage: /add_friend <name>")
        return
    friend = get_repo().add_participant(name)
    logger.info("Telegram: added participant {}", friend.id)
    await update.message.reply_text(f"Added {friend.name}.")


async def remove_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /remove <name>, asking first if the friend still has a balance."""
    repo = get_repo()
    name = " ".join(context.args or []).strip()
    if not name:
        await update.message.reply_text("Usage: /remove <name>")
        return

    matches = [p for p in repo.find_participants(name) if p.id != repo.current_user_id]
    if not matches:
        await update.message.reply_text(f"No friend called {name}.")
        return
    if len(matches) > 1:
        options = ", ".join(p.name for p in matches)
        await update.message.reply_text(f"Which one? {options}")
        return

    friend = matches[0]
    balances = _balances(repo)
    if requires_confirmation(balances, friend.id, settings.delete_epsilon):
        pending = abs(balances[friend.id])
        await update.message.reply_text(
            f"{friend.name} has a pending balance of {format_currency(pending)}. "
            "Are you sure you want to delete them?",
            reply_markup=_yes_no(f"remove_{friend.id}", "remove_cancel"),
        )
        return

    repo.remove_participant(friend.id)
    await update.message.reply_text(f"Removed {friend.name}.")


async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle incoming text messages by parsing them into a candidate expense."""
    user_text = update.message.text.strip()
    logger.info("Telegram message: {}", user_text)
    context.user_data.pop("pending_expense", None)

    await update.message.chat.send_action("typing")

    repo = get_repo()
    parsed = get_parser().parse(user_text)
    if parsed is None:
        await update.message.reply_text(
            "I couldn't turn that into an expense. Try something like "
            '"Dinner with Rahul, 1200".'
        )
        return

    participants = repo.list_participants()
    pending = {
        "description": parsed.description,
        "amount": parsed.amount,
        "category": parsed.category.value,
        "split_with": suggest_split(parsed, participants, repo.current_user_id),
    }
    context.user_data["pending_expense"] = pending
    await update.message.reply_text(
        _expense_preview(pending, participants, repo.current_user_id),
        reply_markup=_yes_no("confirm_yes", "confirm_no"),
    )


async def handle_confirmation(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle Yes/No button presses for new expenses and friend removal."""
    query = update.callback_query
    await query.answer()
    repo = get_repo()

    if query.data == "remove_cancel":
        await query.edit_message_text("Cancelled.")
        return

    if query.data and query.data.startswith("remove_"):
        friend_id = query.data.removeprefix("remove_")
        friend = repo.get_participant(friend_id)
        if friend is None:
            await query.edit_message_text("That friend is already gone.")
            return
        repo.remove_participant(friend_id)
        logger.info("Telegram: removed participant {}", friend_id)
        await query.edit_message_text(f"Removed {friend.name}.")
        return

    pending = context.user_data.pop("pending_expense", None)
    if query.data == "confirm_no":
        await query.edit_message_text(query.message.text + "\n\nCancelled.")
        return

    if not pending:
        await query.edit_message_text("Nothing to confirm. Send a new message.")
        return

    try:
        record = ExpenseRecord(paid_by=repo.current_user_id, **pending)
        repo.add_expense(record)
    except (ValidationError, ValueError) as e:
        logger.error("Error adding expense: {}", e)
        await query.edit_message_text(f"Something went wrong: {e}")
        return

    logger.info("Telegram: added expense {}", record.id)
    await query.edit_message_text(
        f"Done! Added {record.description} ({format_currency(record.amount)})."
    )


def build_bot_app() -> Application:
    """Build and return the Telegram bot application."""
    app = Application.builder().token(settings.telegram_bot_token).build()

    # Command handlers
    app.add_handler(CommandHandler("start", start_command))
    app.add_handler(CommandHandler("help", help_command))
    app.add_handler(CommandHandler("balances", balances_command))
    app.add_handler(CommandHandler("friends", friends_command))
    app.add_handler(CommandHandler("expenses", expenses_command))
    app.add_handler(CommandHandler("add_friend", add_friend_command))
    app.add_handler(CommandHandler("remove", remove_command))

    # Callback query handler for confirmations
    app.add_handler(CallbackQueryHandler(handle_confirmation))

    # Message handlers
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_message))

    return app
