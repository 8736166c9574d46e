from __future__ import annotations

import json
from decimal import Decimal
from unittest.mock import Mock

import pytest
import requests

from domain.address import Address
from domain.calculation import RequestBuilder
from domain.errors import TransportFailure
from services.taxjar_client import NexusRegion, RemoteResponse, TaxJarClient


def _mock_response(body: str, status_code: int = 200) -> Mock:
    response = Mock()
    response.status_code = status_code
    response.text = body
    return response


def _request():
    return RequestBuilder(plugin="python").build(
        Address(country="US", state="CA", postal_code="94107"),
        Address(country="US", state="NY", postal_code="10001"),
        Decimal("10"),
        [],
    )


def test_send_posts_serialized_request() -> None:
    session = Mock()
    session.request.return_value = _mock_response('{"tax": {}}')
    client = TaxJarClient(api_token="token", session=session)
    request = _request()

    response = client.send(request)

    assert response == RemoteResponse(status_code=200, body='{"tax": {}}')
    session.request.assert_called_once()
    args, kwargs = session.request.call_args
    assert args == ("POST", "https://api.taxjar.com/v2/taxes")
    assert kwargs["data"] == request.serialize()
    assert kwargs["timeout"] == 10.0
    assert kwargs["headers"]["Authorization"] == "Bearer token"


def test_send_returns_error_statuses_without_raising() -> None:
    session = Mock()
    session.request.return_value = _mock_response('{"error": "Bad Request"}', status_code=400)
    client = TaxJarClient(api_token="token", session=session)

    response = client.send(_request())

    assert response.status_code == 400
    assert not response.ok


def test_send_wraps_transport_errors() -> None:
    session = Mock()
    session.request.side_effect = requests.Timeout("slow")
    client = TaxJarClient(api_token="token", session=session)

    with pytest.raises(TransportFailure):
        client.send(_request())


def test_request_override_skips_network() -> None:
    session = Mock()
    seen: list[str] = []

    def override(body: str) -> RemoteResponse:
        seen.append(body)
        return RemoteResponse(status_code=200, body="stubbed")

    client = TaxJarClient(api_token="", session=session, request_override=override)
    request = _request()

    assert client.send(request).body == "stubbed"
    assert seen == [request.serialize()]
    session.request.assert_not_called()


def test_client_requires_token_without_override() -> None:
    with pytest.raises(ValueError):
        TaxJarClient(api_token="", session=Mock())


def test_get_nexus_regions_parses_payload() -> None:
    session = Mock()
    payload = {
        "regions": [
            {"country_code": "US", "country": "United States", "region_code": "CA", "region": "California"},
            {"country_code": "GB", "country": "United Kingdom"},
        ]
    }
    session.request.return_value = _mock_response(json.dumps(payload))
    client = TaxJarClient(api_token="token", session=session)

    regions = client.get_nexus_regions()

    assert regions == [NexusRegion("US", "CA"), NexusRegion("GB")]
    assert [region.key() for region in regions] == ["US-CA", "GB"]
    args, _ = session.request.call_args
    assert args == ("GET", "https://api.taxjar.com/v2/nexus/regions")


def test_get_nexus_regions_raises_on_error_status() -> None:
    session = Mock()
    session.request.return_value = _mock_response("denied", status_code=401)
    client = TaxJarClient(api_token="token", session=session)

    with pytest.raises(TransportFailure) as excinfo:
        client.get_nexus_regions()
    assert excinfo.value.status_code == 401
