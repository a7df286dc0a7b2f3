"""
Main entrypoint for the Geotrail geocoder.

Usage:
    python main.py trip.json [--refresh] [--export trip_with_coordinates.json]

Loads a trip file (a JSON array of {city, date, transport} records), geocodes
every city through the provider chain and prints where each coordinate came from.
The HTTP proxy is served separately: `uvicorn geotrail.api.app:app`.
"""
import argparse
import asyncio

from geotrail.api.app import build_resolver
from geotrail.logging_config import setup_logging
from geotrail.trips.loader import MalformedImportData, export_travel_points, load_travel_points


async def geocode_trip(points, refresh=False):
    resolver = build_resolver()
    try:
        if refresh:
            for point in points:
                resolver.invalidate(point.city)
        return await resolver.geocode_travel_points(points)
    finally:
        resolver.close()


def main(argv=None):
    """
    Main function to geocode a trip file.
    """
    parser = argparse.ArgumentParser(description="Geocode the cities of a travel trajectory file")
    parser.add_argument("trip_file", help="JSON array of travel points")
    parser.add_argument("--refresh", action="store_true", help="ignore cached coordinates")
    parser.add_argument("--export", metavar="PATH", help="write the points with coordinates to PATH")
    args = parser.parse_args(argv)

    setup_logging()
    try:
        points = load_travel_points(args.trip_file)
        print(f"Geocoding {len(points)} travel points from {args.trip_file}...")
        resolved = asyncio.run(geocode_trip(points, refresh=args.refresh))

        print(f"\nGeocoding completed")
        for point in points:
            result = resolved.get(point.city.strip())
            if result is None:
                print(f"  {point.date}  {point.city}: not resolved")
            else:
                print(f"  {point.date}  {point.city}: {result.lat:.4f}, {result.lng:.4f} ({result.source.value})")

        if args.export:
            export_travel_points(points, args.export, resolved)
            print(f"\nExported to {args.export}")

        return 0
    except MalformedImportData as e:
        print(f"Invalid trip file: {str(e)}")
        return 1
    except Exception as e:
        print(f"An error occurred in the main function: {str(e)}")
        return 1


if __name__ == "__main__":
    exit_code = main()
    print(f"Exiting with code {exit_code}")
    raise SystemExit(exit_code)
