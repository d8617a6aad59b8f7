from aiogram import Router, F
from aiogram.types import Message, CallbackQuery, InlineKeyboardMarkup, InlineKeyboardButton
from aiogram.filters import Command, CommandObject
from aiogram.utils.text_decorations import html_decoration
from backend.models.user import User
from backend.service import for_user, TrackerService, TrackerView
from backend.tracker import PersistenceError, ValidationError, Reason, Status, parse_date
from bot.reminders import schedule_due_reminder
import logging

logger = logging.getLogger(__name__)

router = Router()

STATUS_LABELS = {
    Status.READY: "🟢 Ready",
    Status.WAIT: "⏳ Wait",
    Status.COMPLETE: "🎉 Complete",
}

# /set field name -> (settings attribute, parser)
SETTABLE = {
    "top": ("top_total", int),
    "bottom": ("bottom_total", int),
    "interval": ("interval_days", int),
    "install": ("install_date", lambda v: None if v.strip().lower() in ("none", "clear", "-") else v),
    "schedule": ("schedule_type", str),
    "name": ("child_name", str),
    "together": ("log_together", lambda v: v.strip().lower() in ("1", "yes", "on", "true")),
}

NOT_REGISTERED = "Please register first with /start."


def get_main_keyboard():
    keyboard = InlineKeyboardMarkup(inline_keyboard=[
        [
            InlineKeyboardButton(text="🔧 Log turn", callback_data="log_both"),
        ],
        [
            InlineKeyboardButton(text="⬆️ Top only", callback_data="log_top"),
            InlineKeyboardButton(text="⬇️ Bottom only", callback_data="log_bottom")
        ],
        [
            InlineKeyboardButton(text="📊 Status", callback_data="status"),
            InlineKeyboardButton(text="📋 History", callback_data="history")
        ],
        [
            InlineKeyboardButton(text="↩️ Undo last", callback_data="undo")
        ]
    ])
    return keyboard


def get_reset_keyboard():
    return InlineKeyboardMarkup(inline_keyboard=[
        [
            InlineKeyboardButton(text="🗑 Yes, delete everything", callback_data="reset_confirm"),
            InlineKeyboardButton(text="Cancel", callback_data="reset_cancel")
        ]
    ])


def format_date(value):
    return value.strftime("%b %d, %Y") if value else "Never"


def format_view(view: TrackerView) -> str:
    top, bottom = view.counts["top"], view.counts["bottom"]
    text = (
        f"🦷 <b>{html_decoration.quote(view.child_name)}</b>\n\n"
        f"⬆️ Top: <b>{top['done']}/{top['total']}</b> ({top['remaining']} left) {STATUS_LABELS[view.statuses['top']]}\n"
        f"⬇️ Bottom: <b>{bottom['done']}/{bottom['total']}</b> ({bottom['remaining']} left) {STATUS_LABELS[view.statuses['bottom']]}\n\n"
        f"📅 Last logged: {format_date(view.last_logged)}\n"
        f"⏭ Next due: {format_date(view.next_due_dates['both'])}\n"
        f"Status: {STATUS_LABELS[view.statuses['both']]}"
    )
    both = view.eligibility["both"]
    if view.statuses["both"] is not Status.COMPLETE and both.reason is Reason.WAIT and both.days_remaining:
        text += f"\n\n⚠️ Please wait {both.days_remaining} more day(s) before the next turn."
    return text


def format_history(view: TrackerView) -> str:
    if not view.history:
        return "No turns logged yet."
    lines = ["📋 <b>Recent turns</b>\n"]
    for number, event in enumerate(view.history, start=1):
        line = f"{number}. {format_date(event.date)} — {event.arch.value}"
        if event.note:
            line += f" <i>“{html_decoration.quote(event.note)}”</i>"
        lines.append(line)
    lines.append("\n/undo_n &lt;n&gt; removes an entry, /fixdate &lt;n&gt; &lt;YYYY-MM-DD&gt; moves it.")
    return "\n".join(lines)


def format_notes(notes) -> str:
    return "📝 <b>Treatment notes</b>\n\n" + "\n".join(
        f"{format_date(n.date)}: {html_decoration.quote(n.note)}" for n in notes[:20])


async def load_service(telegram_id) -> TrackerService:
    user = await User.filter(telegram_id=telegram_id).first()
    if not user:
        return None
    return for_user(user)


async def after_change(service: TrackerService) -> TrackerView:
    view = await service.view()
    await schedule_due_reminder(service.settings_store.user, view)
    return view


@router.message(Command("start"))
async def cmd_start(message: Message):
    if message.from_user is None:
        return
    telegram_id = message.from_user.id
    user = await User.filter(telegram_id=telegram_id).first()
    if not user:
        logger.info(f"Registering telegram user {telegram_id}")
        user = await User.create(telegram_id=telegram_id, name=message.from_user.first_name or None)
        service = for_user(user)
        await service.settings_store.put(await service.settings_store.get())
        welcome_text = (
            "🎉 Welcome to the <b>Expander Turn Tracker</b>!\n\n"
            "I count the expander turns for the top and bottom arch and tell you when the next one is due.\n"
            "Use /settings to set totals, the install date and the schedule."
        )
    else:
        welcome_text = f"👋 Welcome back, {html_decoration.quote(user.name or 'there')}!"
    await message.answer(welcome_text, reply_markup=get_main_keyboard(), parse_mode="HTML")


async def log_turn(service: TrackerService, selection, note=None) -> str:
    result = await service.log_turn(selection, note)
    if not result.logged:
        if result.eligibility.reason is Reason.COMPLETE:
            return "🎉 Nothing to log, this is already complete."
        if result.eligibility.days_remaining:
            return f"⏳ Too early. Please wait {result.eligibility.days_remaining} more day(s)."
        return "⏳ This week's turns are already logged."
    view = await after_change(service)
    arches = " and ".join(e.arch.value for e in result.events)
    return f"✅ Logged {arches} turn.\n\n" + format_view(view)


@router.message(Command("turn"))
async def cmd_turn(message: Message, command: CommandObject):
    if message.from_user is None:
        return
    service = await load_service(message.from_user.id)
    if not service:
        await message.answer(NOT_REGISTERED)
        return
    selection, note = "both", None
    if command.args:
        first, _, rest = command.args.strip().partition(" ")
        if first.lower() in ("top", "bottom", "both"):
            selection, note = first, rest or None
        else:
            note = command.args
    try:
        text = await log_turn(service, selection, note)
    except PersistenceError as e:
        logger.error(f"Failed to log turn: {e}")
        text = f"⚠️ {e}. Nothing was saved."
    await message.answer(text, reply_markup=get_main_keyboard(), parse_mode="HTML")


@router.message(Command("status"))
async def cmd_status(message: Message):
    if message.from_user is None:
        return
    service = await load_service(message.from_user.id)
    if not service:
        await message.answer(NOT_REGISTERED)
        return
    view = await service.view()
    await message.answer(format_view(view), reply_markup=get_main_keyboard(), parse_mode="HTML")


@router.message(Command("history"))
async def cmd_history(message: Message):
    if message.from_user is None:
        return
    service = await load_service(message.from_user.id)
    if not service:
        await message.answer(NOT_REGISTERED)
        return
    view = await service.view()
    await message.answer(format_history(view), parse_mode="HTML")


@router.message(Command("undo"))
async def cmd_undo(message: Message):
    if message.from_user is None:
        return
    service = await load_service(message.from_user.id)
    if not service:
        await message.answer(NOT_REGISTERED)
        return
    try:
        if not await service.undo_last():
            await message.answer("Nothing to undo.")
            return
    except PersistenceError as e:
        logger.error(f"Undo failed: {e}")
        await message.answer(f"⚠️ {e}. The turn was kept.")
        return
    view = await after_change(service)
    await message.answer("↩️ Last turn removed.\n\n" + format_view(view), parse_mode="HTML")


@router.message(Command("undo_n"))
async def cmd_undo_n(message: Message, command: CommandObject):
    if message.from_user is None:
        return
    service = await load_service(message.from_user.id)
    if not service:
        await message.answer(NOT_REGISTERED)
        return
    try:
        number = int((command.args or "").strip())
    except ValueError:
        await message.answer("Usage: /undo_n <number from /history>")
        return
    try:
        removed = await service.undo_at(number - 1)
    except PersistenceError as e:
        logger.error(f"Undo at {number} failed: {e}")
        await message.answer(f"⚠️ {e}. The turn was kept.")
        return
    if not removed:
        await message.answer(f"There is no entry #{number}.")
        return
    view = await after_change(service)
    await message.answer(f"↩️ Entry #{number} removed.\n\n" + format_history(view), parse_mode="HTML")


@router.message(Command("fixdate"))
async def cmd_fixdate(message: Message, command: CommandObject):
    if message.from_user is None:
        return
    service = await load_service(message.from_user.id)
    if not service:
        await message.answer(NOT_REGISTERED)
        return
    parts = (command.args or "").split()
    if len(parts) != 2 or not parts[0].isdigit():
        await message.answer("Usage: /fixdate <number from /history> <YYYY-MM-DD>")
        return
    number = int(parts[0])
    state = await service.current()
    if not 1 <= number <= len(state.events):
        await message.answer(f"There is no entry #{number}.")
        return
    try:
        await service.edit_date(state.events[number - 1].id, parts[1])
    except ValidationError as e:
        await message.answer(f"⚠️ {e}")
        return
    except PersistenceError as e:
        logger.error(f"Date correction failed: {e}")
        await message.answer(f"⚠️ {e}. The date was not changed.")
        return
    view = await after_change(service)
    await message.answer("📅 Date corrected.\n\n" + format_history(view), parse_mode="HTML")


@router.message(Command("settings"))
async def cmd_settings(message: Message):
    if message.from_user is None:
        return
    service = await load_service(message.from_user.id)
    if not service:
        await message.answer(NOT_REGISTERED)
        return
    settings = (await service.current()).settings
    text = (
        f"⚙️ <b>Settings</b>\n\n"
        f"Name: {html_decoration.quote(settings.child_name)}\n"
        f"Top total: {settings.top_total}\n"
        f"Bottom total: {settings.bottom_total}\n"
        f"Install date: {format_date(settings.install_date)}\n"
        f"Schedule: {settings.schedule_type.value}\n"
        f"Interval: {settings.interval_days} day(s)\n"
        f"Log together: {'yes' if settings.log_together else 'no'}\n\n"
        f"Change with /set &lt;{'|'.join(SETTABLE)}&gt; &lt;value&gt;"
    )
    await message.answer(text, parse_mode="HTML")


@router.message(Command("set"))
async def cmd_set(message: Message, command: CommandObject):
    if message.from_user is None:
        return
    service = await load_service(message.from_user.id)
    if not service:
        await message.answer(NOT_REGISTERED)
        return
    key, _, value = (command.args or "").strip().partition(" ")
    if key not in SETTABLE or not value.strip():
        await message.answer(f"Usage: /set <{'|'.join(SETTABLE)}> <value>")
        return
    field, parse = SETTABLE[key]
    try:
        await service.update_settings(**{field: parse(value.strip())})
    except (ValueError, ValidationError) as e:
        await message.answer(f"⚠️ Invalid value: {e}")
        return
    except PersistenceError as e:
        logger.error(f"Saving settings failed: {e}")
        await message.answer(f"⚠️ {e}.")
        return
    view = await after_change(service)
    await message.answer("✅ Saved.\n\n" + format_view(view), parse_mode="HTML")


@router.message(Command("note"))
async def cmd_note(message: Message, command: CommandObject):
    if message.from_user is None:
        return
    service = await load_service(message.from_user.id)
    if not service:
        await message.answer(NOT_REGISTERED)
        return
    text = (command.args or "").strip()
    on_date = service.clock.today()
    first, _, rest = text.partition(" ")
    try:
        if rest and parse_date(first):
            on_date, text = parse_date(first), rest
    except ValidationError:
        pass  # first word is part of the note
    try:
        note = await service.add_note(on_date, text)
    except ValidationError:
        await message.answer("Usage: /note [YYYY-MM-DD] <text>")
        return
    await message.answer(f"📝 Note saved for {format_date(note.date)}.")


@router.message(Command("notes"))
async def cmd_notes(message: Message):
    if message.from_user is None:
        return
    service = await load_service(message.from_user.id)
    if not service:
        await message.answer(NOT_REGISTERED)
        return
    notes = await service.list_notes()
    if not notes:
        await message.answer("No treatment notes yet. Add one with /note.")
        return
    await message.answer(format_notes(notes), parse_mode="HTML")


@router.message(Command("reset"))
async def cmd_reset(message: Message):
    await message.answer(
        "⚠️ <b>Reset all data?</b>\n\nEvery logged turn is deleted and settings go back to defaults. This cannot be undone.",
        reply_markup=get_reset_keyboard(),
        parse_mode="HTML"
    )


@router.callback_query(F.data.in_({"log_both", "log_top", "log_bottom"}))
async def handle_log_callback(callback: CallbackQuery):
    if callback.message is None:
        return
    service = await load_service(callback.from_user.id)
    if not service:
        await callback.message.answer(NOT_REGISTERED)
        await callback.answer()
        return
    try:
        text = await log_turn(service, callback.data.removeprefix("log_"))
    except PersistenceError as e:
        logger.error(f"Failed to log turn: {e}")
        text = f"⚠️ {e}. Nothing was saved."
    await callback.message.answer(text, reply_markup=get_main_keyboard(), parse_mode="HTML")
    await callback.answer()


@router.callback_query(F.data.in_({"status", "history", "undo"}))
async def handle_view_callback(callback: CallbackQuery):
    if callback.message is None:
        return
    service = await load_service(callback.from_user.id)
    if not service:
        await callback.message.answer(NOT_REGISTERED)
        await callback.answer()
        return
    if callback.data == "undo":
        try:
            undone = await service.undo_last()
        except PersistenceError as e:
            logger.error(f"Undo failed: {e}")
            await callback.message.answer(f"⚠️ {e}. The turn was kept.")
            await callback.answer()
            return
        view = await after_change(service) if undone else await service.view()
        prefix = "↩️ Last turn removed.\n\n" if undone else "Nothing to undo.\n\n"
        await callback.message.answer(prefix + format_view(view), reply_markup=get_main_keyboard(), parse_mode="HTML")
    elif callback.data == "history":
        await callback.message.answer(format_history(await service.view()), parse_mode="HTML")
    else:
        await callback.message.answer(format_view(await service.view()), reply_markup=get_main_keyboard(), parse_mode="HTML")
    await callback.answer()


@router.callback_query(F.data.in_({"reset_confirm", "reset_cancel"}))
async def handle_reset_callback(callback: CallbackQuery):
    if callback.message is None:
        return
    if callback.data == "reset_cancel":
        await callback.message.answer("Reset cancelled.")
        await callback.answer()
        return
    service = await load_service(callback.from_user.id)
    if not service:
        await callback.message.answer(NOT_REGISTERED)
        await callback.answer()
        return
    try:
        await service.reset()
    except PersistenceError as e:
        logger.error(f"Reset failed: {e}")
        await callback.message.answer(f"⚠️ {e}. Please check /status.")
        await callback.answer()
        return
    view = await after_change(service)
    await callback.message.answer("🗑 All data reset.\n\n" + format_view(view), reply_markup=get_main_keyboard(), parse_mode="HTML")
    await callback.answer()
