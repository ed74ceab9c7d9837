from datetime import datetime

from pydantic import BaseModel

from swrfph.app.db.models.core_types import SettingCategory


class SettingRead(BaseModel):
    id: str
    key: str
    value: str
    category: SettingCategory
    updated_at: datetime

    class Config:
        from_attributes = True
