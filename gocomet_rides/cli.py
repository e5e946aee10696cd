#!/usr/bin/env python3
"""
gocomet-rides: command line front end for the ride core

Usage examples:
  gocomet-rides serve --port 8080
  gocomet-rides book --user 1234 --source 12.9716,77.5946 --destination 13.0827,80.2707
  gocomet-rides board --driver D1
  gocomet-rides accept --driver D1 --ride 7
  gocomet-rides finish --driver D1 --ride 7
  gocomet-rides cancel --ride 7 --reason "rider no-show"
  gocomet-rides report-location --driver D1 --at 12.9716,77.5946

Every command except ``serve`` talks to RIDES_BASE_URL (or --base-url).
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .board import DriverRideBoard
from .client import RideServiceClient
from .config import settings
from .coordinator import RideRequestCoordinator
from .errors import Outcome, RideCoreError
from .geo import Geopoint, LocationSlot
from .position import DriverPositionReporter, StaticLocationSource
from .selection import LocationSelection


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _client(args: argparse.Namespace) -> RideServiceClient:
    return RideServiceClient(args.base_url, timeout=args.timeout)


def _print_outcome(outcome: Outcome, ok_text: str) -> int:
    if outcome.success:
        print(ok_text)
        return 0
    print(f"error: {outcome.message}", file=sys.stderr)
    return 1


async def _book(args: argparse.Namespace) -> int:
    selection = LocationSelection()
    for slot, text in ((LocationSlot.SOURCE, args.source), (LocationSlot.DESTINATION, args.destination)):
        selection.begin_selection(slot)
        selection.confirm(Geopoint.parse(text))
    async with _client(args) as client:
        outcome = await RideRequestCoordinator(client, selection).submit(args.user)
    return _print_outcome(outcome, f"ride confirmed: {outcome.value}")


async def _board(args: argparse.Namespace) -> int:
    async with _client(args) as client:
        board = DriverRideBoard(client, args.driver)
        outcome = await board.list_rides()
        if not outcome.success:
            return _print_outcome(outcome, "")
        if board.is_empty:
            print("No rides available right now.")
            return 0
        for row in board.rows():
            actions = ",".join(sorted(a.value for a in row.actions)) or "-"
            fare = f" fare={row.ride.fare}" if row.ride.fare is not None else ""
            print(
                f"#{row.ride_id:<6} {row.status.value:<12} "
                f"from {row.ride.pickup.display()} to {row.ride.dropoff.display()}"
                f"{fare} actions={actions}"
            )
    return 0


async def _transition(args: argparse.Namespace) -> int:
    async with _client(args) as client:
        board = DriverRideBoard(client, args.driver)
        loaded = await board.refresh_ride(args.ride)
        if not loaded.success:
            return _print_outcome(loaded, "")
        if args.command == "accept":
            outcome = await board.accept_and_refresh(args.ride)
        else:
            outcome = await board.finish_and_refresh(args.ride)
    if outcome.success and outcome.value.fare is not None:
        return _print_outcome(outcome, f"ride {args.ride} completed, fare {outcome.value.fare}")
    return _print_outcome(outcome, f"ride {args.ride} is now {outcome.value.status.value if outcome.value else '?'}")


async def _cancel(args: argparse.Namespace) -> int:
    async with _client(args) as client:
        try:
            result = await client.cancel_ride(args.ride, args.reason)
        except RideCoreError as exc:
            print(f"error: {exc.message}", file=sys.stderr)
            return 1
    print(result.message or f"ride {args.ride} cancelled")
    return 0


async def _report(args: argparse.Namespace) -> int:
    async with _client(args) as client:
        reporter = DriverPositionReporter(client, StaticLocationSource(Geopoint.parse(args.at)))
        captured = await reporter.capture()
        if not captured.success:
            return _print_outcome(captured, "")
        outcome = await reporter.report(args.driver)
    return _print_outcome(outcome, f"location {captured.value.display()} reported for {args.driver}")


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(
        "gocomet_rides.server.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=(args.log_level or settings.LOG_LEVEL).lower(),
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="gocomet-rides", description="Ride core command line")
    p.add_argument("--base-url", default=settings.RIDES_BASE_URL, help="ride service base URL")
    p.add_argument("--timeout", type=float, default=settings.HTTP_TIMEOUT_SECS, help="HTTP timeout in seconds")
    p.add_argument("--log-level", default=None)
    sub = p.add_subparsers(dest="command", required=True)

    sp = sub.add_parser("serve", help="run the reference ride service")
    sp.add_argument("--host", default=settings.APP_HOST)
    sp.add_argument("--port", type=int, default=settings.APP_PORT)
    sp.add_argument("--reload", action="store_true")

    sp = sub.add_parser("book", help="request a ride between two points")
    sp.add_argument("--user", required=True)
    sp.add_argument("--source", required=True, help="lat,lng")
    sp.add_argument("--destination", required=True, help="lat,lng")

    sp = sub.add_parser("board", help="list rides visible to a driver")
    sp.add_argument("--driver", required=True)

    for name in ("accept", "finish"):
        sp = sub.add_parser(name, help=f"{name} a ride as a driver")
        sp.add_argument("--driver", required=True)
        sp.add_argument("--ride", required=True)

    sp = sub.add_parser("cancel", help="cancel a waiting or running ride")
    sp.add_argument("--ride", required=True)
    sp.add_argument("--reason", default=None)

    sp = sub.add_parser("report-location", help="upload a driver position")
    sp.add_argument("--driver", required=True)
    sp.add_argument("--at", required=True, help="lat,lng")
    return p


_ASYNC_COMMANDS = {
    "book": _book,
    "board": _board,
    "accept": _transition,
    "finish": _transition,
    "cancel": _cancel,
    "report-location": _report,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    if args.command == "serve":
        return _serve(args)
    try:
        return asyncio.run(_ASYNC_COMMANDS[args.command](args))
    except RideCoreError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
