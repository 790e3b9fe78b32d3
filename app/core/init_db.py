from pathlib import Path
from sqlalchemy.engine import make_url
from app.core.config import settings
from app.core.database import Base, engine

# Импортируем модели чтобы они попали в metadata перед созданием таблиц
from app.models import user  # noqa: F401

async def init_db():
    """Инициализация базы данных и создание таблиц"""
    # Гарантируем наличие директории для файла SQLite
    url = make_url(settings.DATABASE_URL)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
