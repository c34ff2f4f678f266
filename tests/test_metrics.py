from conftest import FakeFeedClient, RecordingStore
from feedsync import create_app
from feedsync.services.sync import SyncOrchestrator


def test_metrics_endpoint_counts_request():
    app = create_app()
    client = app.test_client()
    # trigger a request to create metrics
    client.get("/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert b"flask_app_requests_total" in resp.data


def test_metrics_include_sync_counters():
    SyncOrchestrator(FakeFeedClient([{"id": "a"}]), RecordingStore(), "https://example.com/feed.json").run()
    resp = create_app().test_client().get("/metrics")
    assert b"feedsync_runs_total" in resp.data
    assert b"feedsync_items_total" in resp.data
