from app.core.db.crud.base import BaseDB
from app.core.db.models import ActivityLog


class ActivityLogDB(BaseDB[ActivityLog]):
    def __init__(self):
        super().__init__(model=ActivityLog)
