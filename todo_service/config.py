"""
Todo service configuration. This service owns its own database and holds no identity-store credentials;
the access-token signing secret comes from session_auth.settings.
"""
import os

DATABASE_URL = os.environ.get("TODO_DATABASE_URL", "sqlite:///./todo_service.db")

DEFAULT_STATUS = "Todo"
DELETED_STATUS = "Deleted"
MAX_STATUS_LENGTH = 32
MAX_TITLE_LENGTH = 255
