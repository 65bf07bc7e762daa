"""
Helpers for building structured logging context for voice lifecycle events.

The JSON formatter in utils.logging lifts guild_id, user_id, channel_id and
owner_id out of the record's extra dict into top-level fields.
"""

from typing import Any


def log_extra(
    *,
    guild_id: int | None = None,
    user_id: int | None = None,
    channel_id: int | None = None,
    **additional: Any,
) -> dict[str, Any]:
    """
    Build a structured logging extra dict from raw Discord snowflakes.

    IDs are stringified to preserve 64-bit precision in JSON consumers.
    Fields that are None are omitted.

    Examples:
        logger.info("Channel created", extra=log_extra(guild_id=g, channel_id=c))
        logger.info("Deletion cancelled", extra=log_extra(channel_id=c, owner_id=str(o)))
    """
    extra: dict[str, Any] = {}

    if guild_id is not None:
        extra["guild_id"] = str(guild_id)
    if user_id is not None:
        extra["user_id"] = str(user_id)
    if channel_id is not None:
        extra["channel_id"] = str(channel_id)

    extra.update(additional)

    return extra
