import asyncio
from datetime import datetime, time, timedelta
from backend.config import REMINDER_HOUR, REMINDER_POLL_SECONDS
from backend.models.reminder import Reminder
from backend.models.user import User
from backend.service import for_user
from backend.tracker import Status
from aiogram import Bot
import logging

logger = logging.getLogger(__name__)

TURN_DUE = 'turn_due'


def reminder_date(view):
    """Day the next turn can actually be logged.

    The due date can be today while every unfinished arch already has a turn
    today (twice-per-week schedule); only one turn per day and arch is stored,
    so the reminder moves to tomorrow.
    """
    due = view.next_due_dates['both']
    if due is None:
        return None
    pending = [arch for arch in view.last_dates if view.statuses[arch] is not Status.COMPLETE]
    if pending and due == view.as_of and all(view.last_dates[arch] == due for arch in pending):
        return due + timedelta(days=1)
    return due


async def schedule_due_reminder(user: User, view):
    """Replace the pending reminder with one for the current next due date."""
    await Reminder.filter(user=user, type=TURN_DUE, sent=False).delete()
    due = reminder_date(view)
    if due is None:
        return None
    scheduled_for = datetime.combine(due, time(hour=REMINDER_HOUR))
    return await Reminder.create(user=user, type=TURN_DUE, due_date=due, scheduled_for=scheduled_for, sent=False)


async def send_reminder(bot: Bot, reminder: Reminder):
    user = await reminder.user
    if reminder.type == TURN_DUE and user.telegram_id:
        view = await for_user(user).view()
        # the turn may already have been logged since the reminder was planned
        if view.statuses['both'] is Status.READY and reminder_date(view) == view.as_of:
            await bot.send_message(user.telegram_id, f"🔧 Time for {view.child_name}'s expander turn! Use /turn once it's done.")
    reminder.sent = True
    reminder.sent_at = datetime.now()
    await reminder.save()


async def reminders_worker(bot: Bot):
    while True:
        now = datetime.now()
        reminders = await Reminder.filter(sent=False, scheduled_for__lte=now).all()
        for reminder in reminders:
            try:
                await send_reminder(bot, reminder)
            except Exception as e:
                logger.error(f"Failed to send reminder {reminder.id}: {e}")
        await asyncio.sleep(REMINDER_POLL_SECONDS)
