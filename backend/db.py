from tortoise import Tortoise
from backend.config import DB_URL

MODELS = {"models": ["backend.models"]}


async def init_db(db_url: str = DB_URL):
    await Tortoise.init(
        db_url=db_url,
        modules=MODELS
    )
    await Tortoise.generate_schemas()


async def close_db():
    await Tortoise.close_connections()
