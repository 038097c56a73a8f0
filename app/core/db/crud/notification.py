from app.core.db.crud.base import BaseDB
from app.core.db.models import Notification


class NotificationDB(BaseDB[Notification]):
    def __init__(self):
        super().__init__(model=Notification)
