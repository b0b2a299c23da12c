"""
Tests for Radio Tracker

- test_normalization.py: Match keys, metadata parsing, display cleanup
- test_show_detection.py: Show vs. song classification
- test_database.py: Schema, CRUD and read helpers
- test_scrapers.py: ICY, page-scrape and JSON API extractors
- test_songs.py: Song resolution and batch show marking
- test_plays.py: Play dedup, events, duplicate alerts
- test_notifications.py: Notification handlers and fan-out
- test_scheduler.py: Station job scheduling
- test_worker.py: Scrape job handling
- test_cli.py: Command-line commands
"""
