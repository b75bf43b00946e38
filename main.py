"""
RouteLink client
================
Entry point. Run with: python main.py

Shows the persisted session and the signed-in user's trips (driver) or
bookings (rider).
"""

import asyncio
import logging

from routelink.client import RouteLinkClient
from routelink.config import settings
from routelink.domain.enums import Role


async def run() -> None:
    async with RouteLinkClient(settings) as client:
        session = client.session.get_session()
        if not session.is_authenticated:
            print("Not logged in.")
            return

        user = session.user
        print(f"Logged in as {user.name} <{user.email}> ({user.role.value})")
        if user.role == Role.DRIVER:
            page = client.driver_dashboard()
            await page.load()
            if page.trips_error:
                print(page.trips_error)
            for trip in page.trips:
                print(f"  #{trip.id} {trip.start_place} → {trip.end_place} [{trip.status.value}]")
        else:
            page = client.rider_bookings()
            await page.load()
            if page.error:
                print(page.error)
            for row in page.rows:
                flag = " (rate me)" if row.rateable else ""
                print(f"  #{row.booking.id} {row.title} [{row.booking.status.value}]{flag}")


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level)
    asyncio.run(run())
