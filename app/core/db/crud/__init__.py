from app.core.db.crud.base import BaseDB
from app.core.db.crud.activity_log import ActivityLogDB
from app.core.db.crud.notification import NotificationDB
from app.core.db.crud.user import UserDB

# Global CRUD instances - use these instead of creating new instances
user_db = UserDB()
activity_log_db = ActivityLogDB()
notification_db = NotificationDB()

__all__ = [
    # Classes (for type hints and subclassing)
    "ActivityLogDB",
    "BaseDB",
    "NotificationDB",
    "UserDB",
    # Global instances (for actual usage)
    "activity_log_db",
    "notification_db",
    "user_db",
]
