"""Doctor Reputation - lookup CLI

Runs one search, speciality or report lookup and prints the JSON response.
"""

import argparse
import asyncio
import json
import sys

from doctor_reputation.models.schemas import LookupMode, LookupRequest
from doctor_reputation.services.cache import close_redis_client
from doctor_reputation.services.lookup import build_lookup_service


def positive_int(value: str) -> int:
    """argparse type for counts that must be at least 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a whole number, got {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


async def run_lookup(request: LookupRequest) -> bool:
    """Run a lookup and print its response."""
    service = build_lookup_service()
    try:
        response = await service.handle(request)
    finally:
        await close_redis_client()

    print(json.dumps(response.model_dump(exclude_none=True), indent=2))
    return response.success


def main():
    parser = argparse.ArgumentParser(description="Doctor Reputation lookup tool")
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in LookupMode],
        default=LookupMode.SEARCH.value,
        help="Lookup mode (default: search)",
    )
    parser.add_argument("--query", "-q", help="Search text or speciality name")
    parser.add_argument("--source", "-s", help="Source identifier (rms, rs, iwgc)")
    parser.add_argument("--identifier", "-i", help="Doctor identifier/slug for reports")
    parser.add_argument(
        "--review-limit",
        type=positive_int,
        help="Summarize only the most recent N reviews",
    )

    args = parser.parse_args()

    request = LookupRequest(
        mode=LookupMode(args.mode),
        source=args.source,
        query=args.query,
        identifier=args.identifier,
        review_limit=args.review_limit,
    )
    ok = asyncio.run(run_lookup(request))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
