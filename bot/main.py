import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio
from aiogram import Bot, Dispatcher
import logging
from backend.config import BOT_TOKEN
from backend.db import init_db
from bot.handlers import router as user_router
from bot.reminders import reminders_worker

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

dp = Dispatcher()
dp.include_router(user_router)


async def main():
    if not BOT_TOKEN:
        raise SystemExit("BOT_TOKEN is not set")
    bot = Bot(token=BOT_TOKEN)
    logger.info("Starting bot...")
    await init_db()
    logger.info("Database initialized")
    asyncio.create_task(reminders_worker(bot))
    logger.info("Starting polling...")
    await dp.start_polling(bot)

if __name__ == "__main__":
    asyncio.run(main())
