"""
Unit tests for the persistence API client.

Tests:
1. Bearer token and timeout on every request
2. Status mapping (404, 400, 5xx, transport failure)
3. List calls retry transient network failures
4. Malformed 2xx envelopes raise NetworkError

Run with: python -m pytest _tests/test_api_client.py -v
"""

from unittest.mock import MagicMock, patch

import pytest


def _response(status: int, body=None):
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.content = b"x" if body is not None else b""
    response.json.return_value = body
    return response


def _client(*responses):
    from enviro_gis.backend.api_client import ApiClient

    session = MagicMock()
    session.request.side_effect = list(responses)
    return ApiClient("http://api.test/", timeout_s=5.0, session=session), session


class TestRequests:
    """Request construction."""

    def test_token_and_timeout(self):
        client, session = _client(_response(200, {"location": {"id": "1"}}))

        record = client.create_location("abc", {"name": "A"})

        assert record == {"id": "1"}
        method, url = session.request.call_args.args
        kwargs = session.request.call_args.kwargs
        assert (method, url) == ("POST", "http://api.test/locations")
        assert kwargs["headers"]["Authorization"] == "Bearer abc"
        assert kwargs["timeout"] == 5.0

    def test_delete_no_content(self):
        client, _ = _client(_response(204))
        assert client.delete_shape("abc", "7") is None

    def test_requires_base_url(self):
        from enviro_gis.backend.api_client import ApiClient

        with pytest.raises(ValueError):
            ApiClient("")


class TestStatusMapping:
    """HTTP failures map to the error taxonomy."""

    def test_not_found(self):
        from enviro_gis.errors import NotFoundError

        client, _ = _client(_response(404, {"error": "Location not found"}))
        with pytest.raises(NotFoundError) as excinfo:
            client.delete_location("abc", "9")
        assert excinfo.value.message == "Location not found"

    def test_validation(self):
        from enviro_gis.errors import ValidationError

        client, _ = _client(_response(400, {"message": "Missing required fields"}))
        with pytest.raises(ValidationError):
            client.create_shape("abc", {})

    def test_server_error(self):
        from enviro_gis.errors import NetworkError

        client, _ = _client(_response(500, {"error": "boom"}))
        with pytest.raises(NetworkError) as excinfo:
            client.update_shape("abc", "1", {"name": "x"})
        assert excinfo.value.status == 500


class TestEnvelope:
    """2xx bodies missing the expected wrapper map to NetworkError."""

    def test_missing_record_key(self):
        from enviro_gis.errors import NetworkError

        client, _ = _client(_response(201, {"success": True}))
        with pytest.raises(NetworkError) as excinfo:
            client.create_location("abc", {"name": "A"})
        assert "missing 'location'" in excinfo.value.message

    def test_non_object_body(self):
        from enviro_gis.errors import NetworkError

        client, _ = _client(_response(200, ["not", "an", "envelope"]))
        with pytest.raises(NetworkError):
            client.update_shape("abc", "1", {"name": "x"})

    def test_list_of_wrong_type(self):
        from enviro_gis.errors import NetworkError

        client, _ = _client(_response(200, {"locations": {"id": "1"}}))
        with pytest.raises(NetworkError):
            client.list_locations("abc")

    def test_store_reports_network_failure(self):
        from enviro_gis.stores.location_store import LocationStore

        client, _ = _client(_response(201, {"success": True}))
        store = LocationStore(client)
        result = store.create(
            "abc",
            {"name": "Station", "latitude": 51.5, "longitude": -0.1, "layerType": "co2", "co2Level": 410},
        )

        assert not result.ok, "Malformed envelope must not escape as KeyError"
        assert result.kind == "network"
        assert store.locations == []


class TestRetry:
    """retry_api_call on list endpoints."""

    def test_transient_failure_retried(self):
        import requests

        client, session = _client(
            requests.ConnectionError("reset"),
            _response(200, {"shapes": [{"id": "1"}]}),
        )
        with patch("enviro_gis.backend.api_client.time.sleep") as sleep:
            shapes = client.list_shapes("abc")

        assert shapes == [{"id": "1"}]
        assert session.request.call_count == 2
        sleep.assert_called_once()

    def test_gives_up(self):
        from enviro_gis.backend.api_client import retry_api_call
        from enviro_gis.errors import NetworkError

        calls = []

        def failing():
            calls.append(1)
            raise NetworkError("down")

        with patch("enviro_gis.backend.api_client.time.sleep"):
            with pytest.raises(NetworkError):
                retry_api_call(failing, retries=2, delay_s=0.0)
        assert len(calls) == 3

    def test_not_found_not_retried(self):
        from enviro_gis.backend.api_client import retry_api_call
        from enviro_gis.errors import NotFoundError

        fn = MagicMock(side_effect=NotFoundError("gone"))
        with pytest.raises(NotFoundError):
            retry_api_call(fn, retries=3, delay_s=0.0)
        assert fn.call_count == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
