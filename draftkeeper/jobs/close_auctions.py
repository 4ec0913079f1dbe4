"""
Scheduled job to close expired auctions.

Awards each expired auction to its highest bidder (or cancels it when
nobody bid) and writes the resulting changes to the feed.
Can be run as a standalone script or called from a scheduler.
"""

import asyncio
import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from draftkeeper.db.database import async_session_factory
from draftkeeper.db.operations import close_expired_auctions

logger = logging.getLogger(__name__)


async def run_close_auctions(now: datetime | None = None) -> int:
    """
    Close every auction whose end time has passed.

    Returns:
        Number of auctions closed
    """
    logger.info("Closing expired auctions...")

    try:
        async with async_session_factory() as session:
            closed = await close_expired_auctions(session, now=now)
            await session.commit()
    except SQLAlchemyError as e:
        logger.error("Database error closing auctions: %s", e)
        return 0

    logger.info("Closed %d expired auctions", closed)
    return closed


def main() -> None:
    """CLI entry point for closing expired auctions."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_close_auctions())


if __name__ == "__main__":
    main()
