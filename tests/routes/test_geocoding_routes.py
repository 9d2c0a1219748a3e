import pytest

from pestcontrol.services import geocoding


def test_geocoding_endpoint_maps_provider_failure_to_502(client, auth_headers, monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_search(query: str, limit: int = 5):
        raise geocoding.GeocodingError('Geocoding provider unavailable')

    monkeypatch.setattr(geocoding, 'search', failing_search)

    response = client.get('/api/geocoding/search', params={'q': '12 Elm Street'}, headers=auth_headers)

    assert response.status_code == 502
