def test_review_moderation_flow(client, auth_headers, customer) -> None:
    created = client.post(
        '/api/reviews',
        json={'customer_id': customer.id, 'rating': 5, 'text': ' Spotless work '},
        headers=auth_headers,
    )
    assert created.status_code == 201
    review = created.json()
    assert review['status'] == 'pending'
    assert review['text'] == 'Spotless work'

    pending = client.get('/api/reviews', params={'status': 'pending'}, headers=auth_headers).json()
    assert [item['id'] for item in pending] == [review['id']]

    approved = client.patch(f"/api/reviews/{review['id']}", json={'status': 'Approved'}, headers=auth_headers)
    assert approved.json()['status'] == 'approved'

    assert client.get('/api/reviews', params={'status': 'pending'}, headers=auth_headers).json() == []


def test_review_rating_must_be_in_range(client, auth_headers, customer) -> None:
    response = client.post('/api/reviews', json={'customer_id': customer.id, 'rating': 6}, headers=auth_headers)

    assert response.status_code == 422


def test_review_status_filter_is_validated(client, auth_headers) -> None:
    response = client.get('/api/reviews', params={'status': 'hidden'}, headers=auth_headers)

    assert response.status_code == 400


def test_moderating_missing_review_returns_404(client, auth_headers) -> None:
    response = client.patch('/api/reviews/42', json={'status': 'rejected'}, headers=auth_headers)

    assert response.status_code == 404
