from fastapi import Header

from studygenie.config import settings


async def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity. Authentication happens upstream; we only trust the header."""
    return (x_user_id or "").strip() or settings.default_user_id
