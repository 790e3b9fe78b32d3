from datetime import datetime
from pydantic import BaseModel
from typing import Optional

# Схема для ответа с данными пользователя
class User(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
