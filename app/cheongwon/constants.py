"""
Policy constants for the petition platform.
"""
from __future__ import annotations

from datetime import timedelta

REFRESH_COOKIE_MAX_AGE = timedelta(days=7)
EMAIL_COOKIE_MAX_AGE = timedelta(minutes=10)

# Minimum gap between two petitions from the same user
PETITION_MIN_INTERVAL = timedelta(days=7)

# Declared policy; no code path closes petitions or acts on the threshold yet
PETITION_ACTIVE_PERIOD = timedelta(days=30)
AGREEMENT_THRESHOLD = 10

PETITION_STATUS_ONGOING = "ONGOING"
PETITION_STATUS_CLOSED = "CLOSED"
PETITION_STATUSES = (PETITION_STATUS_ONGOING, PETITION_STATUS_CLOSED)

USER_STATUS_ACTIVE = "ACTIVE"
USER_STATUS_WITHDRAWN = "WITHDRAWN"

ROLE_USER = "USER"
ROLE_ADMIN = "ADMIN"

BOARD_TYPES = ("NOTICE", "FAQ")

MAX_PETITION_LINKS = 5
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
