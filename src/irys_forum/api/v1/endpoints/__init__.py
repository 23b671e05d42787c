"""API endpoint modules for version 1."""

from .comments import router as comments_router
from .follows import router as follows_router
from .posts import router as posts_router
from .recommendations import router as recommendations_router
from .stats import router as stats_router
from .system import router as system_router
from .tasks import router as tasks_router
from .usernames import router as usernames_router
from .users import router as users_router
