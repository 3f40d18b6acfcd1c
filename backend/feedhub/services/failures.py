"""Failure recorder: append one ChannelFailure row per failed fetch."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from feedhub.models import ChannelFailure
from feedhub.services.feed_fetcher import ChannelFetchError

logger = logging.getLogger(__name__)


def record_channel_failure(
    db: AsyncSession,
    channel_id: int,
    job_id: str,
    error: ChannelFetchError,
) -> ChannelFailure:
    """
    Add a failure row for ``channel_id`` to the session.

    The row is written with the rest of the batch transaction.

    Args:
        db: Session inside the batch transaction
        channel_id: Channel whose fetch failed
        job_id: Identifier of the job invocation
        error: Classified fetch error

    Returns:
        The pending ChannelFailure
    """
    failure = ChannelFailure(
        channel_id=channel_id,
        job_id=job_id,
        type=error.kind,
        description=error.message,
    )
    db.add(failure)
    logger.warning(f"Channel {channel_id} fetch failed ({error.kind}): {error.message}")
    return failure
