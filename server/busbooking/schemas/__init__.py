"""Pydantic schemas for request/response validation."""

from .admin import *  # noqa: F403
from .booking import *  # noqa: F403
from .common import *  # noqa: F403
from .health import *  # noqa: F403
from .payment import *  # noqa: F403
from .trip import *  # noqa: F403
