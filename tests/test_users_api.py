from app.haultrack.core.enums import UserRole
from tests.factories import auth_headers, create_user


def test_admin_creates_and_lists_drivers(client, db_session):
    admin = create_user(db_session, role=UserRole.ADMIN)

    created = client.post(
        "/api/users",
        headers=auth_headers(admin),
        json={"email": " New.Driver@Example.com ", "name": "New Driver", "phone": "+32 470 00 00 00"},
    )
    assert created.status_code == 201
    assert created.json()["email"] == "new.driver@example.com"
    assert created.json()["role"] == "DRIVER"

    duplicate = client.post(
        "/api/users",
        headers=auth_headers(admin),
        json={"email": "new.driver@example.com", "name": "Again"},
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "USER_ALREADY_EXISTS"

    drivers = client.get("/api/users", headers=auth_headers(admin), params={"role": "DRIVER"})
    assert [row["email"] for row in drivers.json()] == ["new.driver@example.com"]


def test_drivers_see_only_themselves(client, db_session):
    driver = create_user(db_session, name="Solo Driver")

    assert client.get("/api/users", headers=auth_headers(driver)).status_code == 403

    me = client.get("/api/users/me", headers=auth_headers(driver))
    assert me.status_code == 200
    assert me.json()["id"] == str(driver.id)
    assert me.json()["name"] == "Solo Driver"
