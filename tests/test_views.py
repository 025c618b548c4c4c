"""
Tests for the HTTP API.
"""
from unittest.mock import patch

import pytest
import redis
from rest_framework.test import APIClient

from throttler.conf import get_tracker


EVENT = {"category": "payments", "identifier": "gateway-timeout", "details": {"provider": "acme"}}


@pytest.fixture
def api_client():
    return APIClient()


class TestTrackEventApi:

    def test_returns_outcome_and_record(self, api_client):
        response = api_client.post('/api/events/track/', EVENT, format='json')

        assert response.status_code == 200
        body = response.json()
        assert body['type'] == 'immediate'
        assert body['reason'] is None
        assert body['record']['count'] == 1
        assert body['record']['details'] == {"provider": "acme"}

    def test_single_item_list_body(self, api_client):
        api_client.post('/api/events/track/', [EVENT], format='json')
        response = api_client.post('/api/events/track/', [EVENT], format='json')

        assert response.status_code == 200
        assert response.json()['record']['count'] == 2

    def test_deferred_after_limit(self, api_client):
        outcomes = [
            api_client.post('/api/events/track/', EVENT, format='json').json()['type']
            for _ in range(7)
        ]
        assert outcomes == ['immediate'] * 5 + ['deferred', 'ignored']

    @pytest.mark.parametrize("body", [
        [EVENT, EVENT],
        {"category": "payments"},
        {"category": "", "identifier": "x"},
        {"category": "payments", "identifier": 42},
    ])
    def test_rejects_malformed_body(self, api_client, body):
        response = api_client.post('/api/events/track/', body, format='json')
        assert response.status_code == 400

    def test_storage_failure(self, api_client):
        with patch('throttler.views.get_tracker') as get_tracker_mock:
            get_tracker_mock.return_value.track_event.side_effect = redis.ConnectionError("down")
            response = api_client.post('/api/events/track/', EVENT, format='json')

        assert response.status_code == 503


class TestEnqueueEventApi:

    def test_queues_task(self, api_client):
        with patch('throttler.views.track_event.delay') as delay:
            response = api_client.post('/api/events/enqueue/', EVENT, format='json')

        assert response.status_code == 202
        delay.assert_called_once_with(category="payments", identifier="gateway-timeout",
                                      details={"provider": "acme"})

    def test_broker_failure(self, api_client):
        with patch('throttler.views.track_event.delay', side_effect=ConnectionError("broker down")):
            response = api_client.post('/api/events/enqueue/', EVENT, format='json')

        assert response.status_code == 500


class TestDeferredEventsApi:

    def test_lists_deferred(self, api_client, tracker_settings):
        tracker_settings.EVENT_TRACKER = {'BACKEND': 'memory', 'PURGE_INTERVAL': 0, 'LIMIT': 0}
        get_tracker().track_event("payments", "gateway-timeout", {"provider": "acme"})
        get_tracker().track_event("payments", "card-declined", None)

        response = api_client.get('/api/events/deferred/')

        assert response.status_code == 200
        assert sorted(r['identifier'] for r in response.json()) == ["card-declined", "gateway-timeout"]
        assert all(r['deferred'] for r in response.json())


class TestUpdateConfigApi:

    def test_unknown_key(self, api_client):
        response = api_client.post('/api/events/config/', {**EVENT, "config": {"limit": 1}}, format='json')
        assert response.status_code == 404
        assert response.json()['updated'] is False

    def test_updates_existing_record(self, api_client):
        api_client.post('/api/events/track/', EVENT, format='json')

        response = api_client.post('/api/events/config/', {**EVENT, "config": {"limit": 1}}, format='json')

        assert response.status_code == 200
        follow_up = api_client.post('/api/events/track/', EVENT, format='json').json()
        assert follow_up['type'] == 'deferred'
        assert follow_up['record']['config']['limit'] == 1

    @pytest.mark.parametrize("config", [
        {"limit": "abc"},
        {"limit": -1},
        {"limit": True},
        {"bucket_size": 0},
        {"refill_rate": 0},
        {"refill_rate": "fast"},
        {"defer_interval": -10},
    ])
    def test_rejects_invalid_values_and_keeps_key_usable(self, api_client, config):
        api_client.post('/api/events/track/', EVENT, format='json')

        response = api_client.post('/api/events/config/', {**EVENT, "config": config}, format='json')

        assert response.status_code == 400
        follow_up = api_client.post('/api/events/track/', EVENT, format='json')
        assert follow_up.status_code == 200
        assert follow_up.json()['record']['config'] == {'limit': 5, 'defer_interval': 3600}

    def test_requires_config_object(self, api_client):
        response = api_client.post('/api/events/config/', {**EVENT, "config": "limit=1"}, format='json')
        assert response.status_code == 400
