"""
Command-line interface for Radio Tracker

Commands:
- Run the tracker (scheduler + workers) until stopped
- One-off scrapes
- Station management and inspection
- Maintenance (ICY probe, show re-classification)

Usage:
    python -m radio_tracker.cli --help
"""

import argparse
import signal
import sqlite3
import sys
import threading
import logging

from radio_tracker.logging_setup import setup_logging
from radio_tracker.settings import load_settings, SETTINGS_FILE
from radio_tracker.database import TrackerDatabase
from radio_tracker.notifications import build_notifier
from radio_tracker.plays import PlayRecorder
from radio_tracker.scheduler import ScrapeScheduler
from radio_tracker.scrapers import resolve_metadata_type, supports_icy_metadata
from radio_tracker.songs import mark_existing_shows
from radio_tracker.worker import ScrapeWorker

logger = logging.getLogger(__name__)


def load_database(settings):
    """Load database from settings

    Returns:
        TrackerDatabase instance (connected)
    """
    db_file = settings.get('database', {}).get('file', 'radio_tracker.db')
    db = TrackerDatabase(db_file)
    db.connect()
    return db


def build_worker(db, settings):
    """Wire notifier, recorder and worker for a database"""
    notifier = build_notifier(settings)
    recorder = PlayRecorder(db, notifier, settings)
    return ScrapeWorker(db, recorder, settings)


def cmd_run(args, settings):
    """Poll every active station on its own schedule until stopped

    Usage: --run
    """
    db = load_database(settings)
    worker = build_worker(db, settings)

    scheduler = ScrapeScheduler(db, max_workers=settings.get('scheduler', {}).get('max_workers', 10))
    scheduler.process(worker.handle)
    count = scheduler.schedule_station_scrapes(run_now=True)

    if count == 0:
        print("[WARNING] No active stations. Add one with --add-station")

    stop_event = threading.Event()

    def signal_handler(sig, frame):
        logger.info("Shutdown signal received. Stopping gracefully...")
        stop_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    scheduler.start()
    logger.info(f"Tracking {count} stations. Press Ctrl+C to stop.")

    try:
        while not stop_event.is_set():
            stop_event.wait(1)
    finally:
        scheduler.shutdown(wait=True)
        worker.shutdown()
        db.close()
        logger.info("Shutdown complete. Goodbye!")

    return 0


def cmd_scrape_once(args, settings):
    """Scrape every active station (or one) once

    Usage: --scrape-once [--station SLUG]
    """
    db = load_database(settings)
    worker = build_worker(db, settings)

    print("[INFO] Starting manual scrape...")

    try:
        results = worker.scrape_all_once(slug=args.station)
    except ValueError as e:
        print(f"[FAIL] {e}")
        return 1
    finally:
        worker.shutdown()
        db.close()

    failed = []
    for result in results:
        if not result['success']:
            failed.append(result['slug'])
            print(f"  {result['slug']}: failed ({result.get('error')})")
        elif result.get('skipped'):
            print(f"  {result['slug']}: no track information")
        else:
            song = result['song']
            state = 'still playing' if result['duplicate'] else 'new play'
            print(f"  {result['slug']}: {song['artist']} - {song['title']} ({state})")

    print(f"\n[OK] Scrape complete! Stations scraped: {len(results)}")
    if failed:
        print(f"[WARNING] Failed to scrape: {', '.join(failed)}")

    return 0


def cmd_list_stations(args, settings):
    """List all stations

    Usage: --list-stations
    """
    db = load_database(settings)
    stations = db.get_all_stations()

    if not stations:
        print("No stations configured")
        return 0

    for station in stations:
        status = 'active' if station['is_active'] else 'inactive'
        print(
            f"{station['slug']:<20} {station['name']:<25} {station['metadata_type']:<12} "
            f"every {station['scrape_interval']}s  {status}  "
            f"last scraped: {station['last_scraped_at'] or 'never'}"
        )

    db.close()
    return 0


def cmd_now_playing(args, settings):
    """Show the latest play of every active station

    Usage: --now-playing
    """
    db = load_database(settings)

    for entry in db.get_now_playing():
        if entry['title'] is None:
            print(f"{entry['name']:<25} (nothing recorded)")
            continue

        marker = ' [show]' if entry['is_non_song'] else ''
        print(f"{entry['name']:<25} {entry['artist']} - {entry['title']}{marker}  ({entry['played_at']} UTC)")

    db.close()
    return 0


def cmd_add_station(args, settings):
    """Add a station

    Usage: --add-station SLUG --name NAME --url URL [--type TYPE] [--interval N]
           [--page-slug SLUG] [--feed-id ID]
    """
    if not args.name or not args.url:
        print("[FAIL] --name and --url are required with --add-station")
        return 1

    try:
        metadata_type = resolve_metadata_type(args.type)
    except ValueError as e:
        print(f"[FAIL] {e}")
        return 1

    metadata_config = {}
    if args.page_slug:
        metadata_config['page_slug'] = args.page_slug
    if args.feed_id:
        metadata_config['feed_id'] = args.feed_id

    if metadata_type == 'json-api' and 'feed_id' not in metadata_config:
        print("[FAIL] --feed-id is required for json-api stations")
        return 1

    db = load_database(settings)
    try:
        station = db.add_station(
            args.add_station,
            args.name,
            args.url,
            metadata_type=metadata_type,
            metadata_config=metadata_config,
            scrape_interval=args.interval,
        )
    except ValueError as e:
        print(f"[FAIL] {e}")
        return 1
    except sqlite3.IntegrityError as e:
        print(f"[FAIL] Station '{args.add_station}' already exists: {e}")
        return 1
    finally:
        db.close()

    print(f"[OK] Added {station['name']} ({station['slug']}, {station['metadata_type']})")
    return 0


def cmd_probe_stream(args, settings):
    """Check whether a stream supports ICY metadata

    Usage: --probe-stream URL
    """
    print(f"[INFO] Probing {args.probe_stream}...")

    if supports_icy_metadata(args.probe_stream, timeout=5):
        print("[OK] Stream supports ICY metadata")
        return 0

    print("[FAIL] Stream does not support ICY metadata")
    return 1


def cmd_mark_shows(args, settings):
    """Re-run show detection over existing songs

    Usage: --mark-shows [--apply]
    """
    db = load_database(settings)
    shows = mark_existing_shows(db, apply=args.apply)

    for show in shows:
        print(
            f"  {show['artist']} - {show['title']} on {show['station_name']} "
            f"({show['play_count']} plays, confidence {show['confidence']})"
        )

    if args.apply:
        print(f"\n[OK] Marked {len(shows)} songs as shows")
    else:
        print(f"\n[INFO] Dry run: {len(shows)} songs would be marked as shows. Use --apply to update.")

    db.close()
    return 0


def main(argv=None):
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description='Radio Tracker - records what radio stations play',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument('--settings', metavar='FILE', default=SETTINGS_FILE,
                       help=f'Settings file (default: {SETTINGS_FILE})')

    # Commands
    parser.add_argument('--run', action='store_true',
                       help='Poll all active stations until stopped')
    parser.add_argument('--scrape-once', action='store_true',
                       help='Scrape every active station once and exit')
    parser.add_argument('--list-stations', action='store_true',
                       help='List all stations')
    parser.add_argument('--now-playing', action='store_true',
                       help='Show the latest play of every active station')
    parser.add_argument('--add-station', metavar='SLUG',
                       help='Add a station with this slug')
    parser.add_argument('--probe-stream', metavar='URL',
                       help='Check whether a stream supports ICY metadata')
    parser.add_argument('--mark-shows', action='store_true',
                       help='Re-run show detection over existing songs')

    # Options
    parser.add_argument('--station', metavar='SLUG',
                       help='Only this station (with --scrape-once)')
    parser.add_argument('--name', metavar='NAME',
                       help='Station display name (with --add-station)')
    parser.add_argument('--url', metavar='URL',
                       help='Station stream URL (with --add-station)')
    parser.add_argument('--type', default='icy', metavar='TYPE',
                       help='Metadata type: icy, page-scrape or json-api (default: icy)')
    parser.add_argument('--interval', type=int, default=60, metavar='SECONDS',
                       help='Seconds between polls (default: 60)')
    parser.add_argument('--page-slug', metavar='SLUG',
                       help='Page slug for page-scrape stations (default: station slug)')
    parser.add_argument('--feed-id', metavar='ID',
                       help='Feed id for json-api stations')
    parser.add_argument('--apply', action='store_true',
                       help='Apply changes (with --mark-shows; default is a dry run)')

    args = parser.parse_args(argv)

    settings = load_settings(args.settings)
    setup_logging(settings)

    # Route to appropriate command
    if args.run:
        return cmd_run(args, settings)
    elif args.scrape_once:
        return cmd_scrape_once(args, settings)
    elif args.list_stations:
        return cmd_list_stations(args, settings)
    elif args.now_playing:
        return cmd_now_playing(args, settings)
    elif args.add_station:
        return cmd_add_station(args, settings)
    elif args.probe_stream:
        return cmd_probe_stream(args, settings)
    elif args.mark_shows:
        return cmd_mark_shows(args, settings)
    else:
        parser.print_help()
        return 0


if __name__ == '__main__':
    sys.exit(main())
