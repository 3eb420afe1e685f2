from __future__ import annotations

import uuid


def make_tracking_id() -> str:
    return str(uuid.uuid4())
