def test_me_returns_current_user(client, as_teacher, market) -> None:
    response = client.get('/auth/me', headers=as_teacher)

    assert response.status_code == 200
    assert response.json() == {'id': market.teacher_id, 'email': 'teacher@example.com', 'role': 'teacher'}


def test_invalid_token_is_unauthorized(client) -> None:
    response = client.get('/auth/me', headers={'Authorization': 'Bearer not-a-token'})

    assert response.status_code == 401
