"""Tests for the Grafana client."""

from unittest.mock import patch

import pytest

from conftest import make_response
from pm_bridge.api.grafana_client import GrafanaClient, time_range_to_ms
from pm_bridge.core.scope_guard import ScopeGuard


ALERTS = [
    {
        "labels": {"alertname": "HighLatency"},
        "annotations": {"summary": "p99 above 2s", "value": "2.4"},
        "status": {"state": "active", "silencedBy": [], "inhibitedBy": []},
        "startsAt": "2024-05-09T10:00:00Z"
    },
    {
        "labels": {"alertname": "DiskFull"},
        "annotations": {},
        "status": {"state": "suppressed", "silencedBy": ["silence-1"], "inhibitedBy": []},
        "startsAt": "2024-05-09T11:00:00Z"
    }
]

RULES = {
    "Infra": [
        {"name": "disk", "rules": [
            {"grafana_alert": {"uid": "r1", "title": "DiskFull", "condition": "C"}},
            {"grafana_alert": {"uid": "r2", "title": "InodesLow", "condition": "B"}}
        ]}
    ],
    "App": [
        {"name": "latency", "rules": [{"alert": "HighLatency"}]}
    ]
}


@pytest.mark.parametrize("value,expected", [
    ("1h", 3600000),
    ("6h", 21600000),
    ("7d", 604800000),
    ("2w", None),
    ("", None)
])
def test_time_range_to_ms(value, expected):
    assert time_range_to_ms(value) == expected


class TestGrafanaClient:
    """Test cases for GrafanaClient."""

    @pytest.fixture
    def client(self, cache, limiter):
        """Create a Grafana client; alerting needs no scope."""
        return GrafanaClient("https://grafana.acme.io", "glsa_test", cache, limiter, ScopeGuard())

    def test_alerts(self, client):
        with patch.object(client.session, "request", return_value=make_response(ALERTS)) as request:
            result = client.get_alerts()

        kwargs = request.call_args.kwargs
        assert kwargs["url"] == "https://grafana.acme.io/api/alertmanager/grafana/api/v2/alerts"
        assert kwargs["params"] == {}
        assert result.source == "https://grafana.acme.io"
        assert result.total == 2
        assert result.alerts[0].value == "2.4"
        assert result.alerts[1].silenced_by == ["silence-1"]

    def test_alerts_filtered_by_state(self, client):
        with patch.object(client.session, "request", return_value=make_response(ALERTS)):
            result = client.get_alerts(state="suppressed")

        assert result.total == 1
        assert result.alerts[0].labels["alertname"] == "DiskFull"

    def test_alert_rules_are_flattened(self, client):
        with patch.object(client.session, "request", return_value=make_response(RULES)):
            rules = client.get_alert_rules()

        assert [(r.folder_title, r.title) for r in rules] == [
            ("Infra", "DiskFull"),
            ("Infra", "InodesLow"),
            ("App", "HighLatency")
        ]

    def test_annotations(self, client):
        payload = [{"id": 1, "dashboardUID": "abc", "panelId": 3, "text": "Deploy", "tags": ["deploy"],
                    "time": 1715248800000, "timeEnd": 1715249400000}]
        with patch.object(client.session, "request", return_value=make_response(payload)) as request, \
                patch("pm_bridge.api.grafana_client.time.time", return_value=1715250000.0):
            annotations = client.get_annotations(dashboard_uid="abc", time_range="1h", limit=1000)

        params = request.call_args.kwargs["params"]
        assert params["limit"] == "200"
        assert params["dashboardUID"] == "abc"
        assert params["to"] == "1715250000000"
        assert params["from"] == "1715246400000"
        assert annotations[0].dashboard_uid == "abc"
        assert annotations[0].time_end == 1715249400000

    def test_alerts_are_cached(self, client, limiter):
        with patch.object(client.session, "request", return_value=make_response(ALERTS)) as request:
            client.get_alerts()
            client.get_alerts()

        assert request.call_count == 1
        assert limiter.available_tokens == 9
