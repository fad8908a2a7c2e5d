from __future__ import annotations

from datetime import datetime


def current_year() -> int:
    return datetime.now().year
