from datetime import datetime, time
from zoneinfo import ZoneInfo

import pytest

from pestcontrol.core import config
from pestcontrol.scheduling import availability


def test_dashboard_counts_today(client, auth_headers, customer) -> None:
    today = availability.business_today()
    client.post(
        '/api/appointments',
        json={
            'customer_id': customer.id,
            'start_time': datetime.combine(today, time(9, 0)).isoformat(),
            'service_type': 'general',
        },
        headers=auth_headers,
    )
    client.post('/api/reviews', json={'customer_id': customer.id, 'rating': 4}, headers=auth_headers)

    summary = client.get('/api/dashboard', headers=auth_headers).json()

    assert summary['day'] == today.isoformat()
    assert summary['todays_appointments'] == 1
    assert summary['open_slots_today'] == 36
    assert summary['pending_appointments'] == 1
    assert summary['pending_reviews'] == 1
    assert summary['customers'] == 1


def test_dashboard_uses_business_time_zone_for_today(
    client,
    auth_headers,
    customer,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(config, 'BUSINESS_TIMEZONE', 'Pacific/Kiritimati')
    business_day = datetime.now(ZoneInfo('Pacific/Kiritimati')).date()
    client.post(
        '/api/appointments',
        json={
            'customer_id': customer.id,
            'start_time': datetime.combine(business_day, time(10, 0)).isoformat(),
            'service_type': 'general',
        },
        headers=auth_headers,
    )

    summary = client.get('/api/dashboard', headers=auth_headers).json()

    assert summary['day'] == business_day.isoformat()
    assert summary['todays_appointments'] == 1
    assert summary['open_slots_today'] == 36
