import uuid


def test_read_me(client, student):
    response = client.get("/api/v1/users/me", headers=student["headers"])

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == student["id"]
    assert data["name"] == "Sam Student"
    assert data["role"] == "student"


def test_update_name(client, make_user):
    user = make_user()

    response = client.patch("/api/v1/users/me", json={"name": "Renamed"}, headers=user["headers"])

    assert response.status_code == 200
    assert response.json()["name"] == "Renamed"


def test_update_ignores_null_name(client, make_user):
    user = make_user(name="Kept Name")

    response = client.patch("/api/v1/users/me", json={"name": None}, headers=user["headers"])

    assert response.status_code == 200
    assert response.json()["name"] == "Kept Name"


def test_public_profile_hides_email(client, tutor, student):
    response = client.get(f"/api/v1/users/{tutor['id']}", headers=student["headers"])

    assert response.status_code == 200
    assert response.json() == {"id": tutor["id"], "name": "Tina Tutor", "role": "tutor"}


def test_public_profile_not_found(client):
    response = client.get(f"/api/v1/users/{uuid.uuid4()}")
    assert response.status_code == 404
