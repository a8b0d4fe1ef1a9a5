import logging
from typing import Optional

from fastapi import Header, HTTPException

logger = logging.getLogger(__name__)

ACTOR_HEADER = "X-User-Id"


async def get_actor_id(x_user_id: Optional[str] = Header(None, alias=ACTOR_HEADER)) -> str:
    """
    Identify the caller.

    The id is opaque: it is stamped on created_by / updated_by columns and never
    checked against a user table. Authentication happens upstream.
    """
    actor_id = (x_user_id or "").strip()
    if not actor_id:
        logger.warning(f"⚠️ Request without {ACTOR_HEADER} header rejected")
        raise HTTPException(status_code=401, detail=f"Missing {ACTOR_HEADER} header")
    return actor_id
