# ABOUTME: Quick connectivity check against a HaloPSA instance
# ABOUTME: Loads options from the environment and lists ticket types and tickets

import asyncio
import logging
import sys

from halopsa.client import HaloClient
from halopsa.exceptions import HaloError
from halopsa.options import HaloClientOptions
from halopsa.types import TicketFilter

logger = logging.getLogger(__name__)


async def run_check(client: HaloClient) -> dict[str, int]:
    """
    Fetch a small sample from the API.

    Returns:
        Counts of ticket types, tickets returned, and the total ticket count
    """
    ticket_types = await client.ticket_types.get_all()
    tickets = await client.tickets.get_all(TicketFilter(count=5))
    return {
        "ticket_types": len(ticket_types),
        "tickets": len(tickets.tickets),
        "ticket_record_count": tickets.record_count,
    }


async def _main() -> int:
    try:
        options = HaloClientOptions.from_env(
            enable_request_logging=True,
            enable_response_logging=True,
        )
        async with HaloClient(options) as client:
            print(f"Checking HaloPSA API at {client.base_url}")
            counts = await run_check(client)
    except HaloError as exc:
        logger.error(f"HaloPSA check failed: {exc}")
        return 1

    for name, value in counts.items():
        print(f"{name}: {value}")
    return 0


def main() -> None:
    """Run the API check."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    sys.exit(asyncio.run(_main()))


if __name__ == "__main__":
    main()
