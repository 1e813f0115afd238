"""Cancel bookings left awaiting payment past the provisional TTL."""

import argparse
import asyncio
from datetime import timedelta

import structlog

from medtech.config import settings
from medtech.core.timeutils import utcnow
from medtech.database import AsyncSessionLocal, engine
from medtech.middleware.logging import configure_logging
from medtech.services.booking_orchestrator import BookingOrchestrator
from medtech.services.payment_gateway import PesapalGateway

logger = structlog.get_logger()


async def expire_bookings(ttl_minutes: int) -> int:
    """Cancel unpaid bookings created more than ``ttl_minutes`` ago."""
    cutoff = utcnow() - timedelta(minutes=ttl_minutes)
    gateway = PesapalGateway()
    try:
        async with AsyncSessionLocal() as session:
            orchestrator = BookingOrchestrator(session, gateway)
            return await orchestrator.expire_abandoned_bookings(cutoff)
    finally:
        await gateway.aclose()
        await engine.dispose()


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Release slots held by unpaid bookings")
    parser.add_argument(
        "--ttl-minutes",
        type=int,
        default=settings.provisional_booking_ttl_minutes,
        help="Age after which a pending booking is cancelled",
    )
    args = parser.parse_args()

    configure_logging()
    count = asyncio.run(expire_bookings(args.ttl_minutes))
    print(f"✓ Expired {count} abandoned booking(s)")


if __name__ == "__main__":
    main()
