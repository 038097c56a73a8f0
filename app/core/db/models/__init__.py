from app.core.db.models.activity_log import ActivityLog
from app.core.db.models.notification import Notification
from app.core.db.models.user import User

__all__ = [
    "ActivityLog",
    "Notification",
    "User",
]
