"""
Scheduler tests

Tests the recurring job interface and per-station job management. The
scheduler is started paused so no job ever fires.
"""

import pytest

from radio_tracker.scheduler import ScrapeScheduler, build_job_payload, station_job_id


@pytest.fixture
def scheduler(test_db):
    scheduler = ScrapeScheduler(test_db, max_workers=2)
    scheduler.start(paused=True)
    yield scheduler
    scheduler.shutdown(wait=False)


@pytest.mark.unit
class TestJobPayload:

    def test_icy_payload(self, zm):
        assert build_job_payload(zm) == {
            'station_id': zm['id'],
            'slug': 'zm',
            'stream_url': 'http://stream.test/zm',
            'metadata_type': 'icy',
            'page_slug': 'zm',
            'feed_id': None,
        }

    def test_page_scrape_payload(self, the_rock):
        assert build_job_payload(the_rock)['page_slug'] == 'the-rock'

    def test_json_api_payload(self, test_db):
        payload = build_job_payload(test_db.get_station_by_slug('radio-hauraki'))
        assert payload['feed_id'] == 6191


@pytest.mark.unit
class TestRecurringJobs:
    """Test add/list/remove"""

    def test_add_and_list(self, scheduler):
        scheduler.add_recurring('custom', {'slug': 'zm'}, 30000)
        jobs = scheduler.list_recurring()
        assert [(j['id'], j['interval_ms'], j['payload']) for j in jobs] == [
            ('custom', 30000, {'slug': 'zm'}),
        ]

    def test_add_replaces(self, scheduler):
        scheduler.add_recurring('custom', {'slug': 'zm'}, 30000)
        scheduler.add_recurring('custom', {'slug': 'zm'}, 90000)
        jobs = scheduler.list_recurring()
        assert len(jobs) == 1
        assert jobs[0]['interval_ms'] == 90000

    def test_remove(self, scheduler):
        scheduler.add_recurring('custom', {'slug': 'zm'}, 30000)
        assert scheduler.remove_recurring('custom') is True
        assert scheduler.remove_recurring('custom') is False
        assert scheduler.list_recurring() == []

    def test_invalid_interval(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.add_recurring('custom', {}, 0)

    def test_process_dispatches_payload(self, scheduler):
        received = []
        scheduler.process(received.append)
        scheduler._run_job('custom', {'slug': 'zm'})
        assert received == [{'slug': 'zm'}]

    def test_handler_errors_are_contained(self, scheduler):
        def broken(payload):
            raise RuntimeError('boom')

        scheduler.process(broken)
        scheduler._run_job('custom', {'slug': 'zm'})


@pytest.mark.unit
class TestStationJobs:
    """Test per-station scheduling"""

    def test_one_job_per_active_station(self, scheduler, test_db):
        assert scheduler.schedule_station_scrapes() == 4

        jobs = {j['id']: j for j in scheduler.list_recurring()}
        assert len(jobs) == 4
        for station in test_db.get_active_stations():
            job = jobs[station_job_id(station['id'])]
            assert job['interval_ms'] == station['scrape_interval'] * 1000
            assert job['payload'] == build_job_payload(station)

        zb = test_db.get_station_by_slug('newstalk-zb')
        assert jobs[f"station-{zb['id']}"]['interval_ms'] == 120000

    def test_resync_is_idempotent(self, scheduler):
        scheduler.schedule_station_scrapes()
        first = sorted((j['id'], j['interval_ms']) for j in scheduler.list_recurring())
        scheduler.schedule_station_scrapes()
        second = sorted((j['id'], j['interval_ms']) for j in scheduler.list_recurring())
        assert first == second
        assert len(second) == 4

    def test_resync_drops_stale_jobs(self, scheduler):
        scheduler.add_recurring('station-999', {'slug': 'gone'}, 60000)
        scheduler.schedule_station_scrapes()
        assert 'station-999' not in [j['id'] for j in scheduler.list_recurring()]

    def test_inactive_station_not_scheduled(self, scheduler, test_db):
        station = test_db.add_station('off-air', 'Off Air', 'http://stream.test/off', is_active=False)
        scheduler.schedule_station_scrapes()
        assert station_job_id(station['id']) not in [j['id'] for j in scheduler.list_recurring()]

        with pytest.raises(ValueError):
            scheduler.add_station_job(station['id'])

    def test_add_and_remove_station_job(self, scheduler, zm):
        scheduler.add_station_job(zm['id'])
        assert [j['id'] for j in scheduler.list_recurring()] == [f"station-{zm['id']}"]

        assert scheduler.remove_station_job(zm['id']) is True
        assert scheduler.list_recurring() == []

    def test_unknown_station(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.add_station_job(999)

    def test_job_options(self, scheduler, zm):
        scheduler.add_station_job(zm['id'])
        job = scheduler.scheduler.get_job(station_job_id(zm['id']))
        assert job.max_instances == 1
        assert job.coalesce is True
