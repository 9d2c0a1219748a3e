import httpx
import pytest

from pestcontrol.services import geocoding

def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_search_parses_nominatim_results() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen['params'] = dict(request.url.params)
        seen['user_agent'] = request.headers['user-agent']
        return httpx.Response(
            200,
            json=[
                {'display_name': '12 Elm Street, Springfield', 'lat': '39.78', 'lon': '-89.65'},
                {'display_name': 'Missing coordinates'},
            ],
        )

    results = geocoding.search('12 Elm Street', client=_client(handler))

    assert results == [geocoding.GeocodeResult(display_name='12 Elm Street, Springfield', lat=39.78, lng=-89.65)]
    assert seen['params']['format'] == 'json'
    assert seen['params']['q'] == '12 Elm Street'
    assert seen['user_agent']


def test_search_skips_short_queries() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError('provider should not be called')

    assert geocoding.search('ab', client=_client(handler)) == []


def test_search_reports_provider_errors() -> None:
    with pytest.raises(geocoding.GeocodingError):
        geocoding.search('12 Elm Street', client=_client(lambda request: httpx.Response(503, text='busy')))


def test_geocode_returns_none_without_matches() -> None:
    assert geocoding.geocode('Nowhere Lane', client=_client(lambda request: httpx.Response(200, json=[]))) is None
