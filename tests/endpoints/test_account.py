class TestAccountEndpoints:
    def test_read_me(self, client, user_factory, auth_headers):
        user = user_factory()
        response = client.get("/account/me", headers=auth_headers(user))
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == user.id
        assert data["email"] == user.email
        assert data["role"] == "student"

    def test_update_me(self, client, user_factory, auth_headers):
        user = user_factory()
        headers = auth_headers(user)
        response = client.put("/account/me", headers=headers, json={"first_name": "Grace", "phone": "+15550100"})
        assert response.status_code == 200, response.text
        data = response.json()["data"]
        assert data["first_name"] == "Grace"
        assert data["phone"] == "+15550100"
        assert data["last_name"] == user.last_name

    def test_update_me_rejects_blank_name(self, client, user_factory, auth_headers):
        response = client.put("/account/me", headers=auth_headers(user_factory()), json={"first_name": "  "})
        assert response.status_code == 422

    def test_change_password(self, client, user_factory, auth_headers):
        user = user_factory()
        headers = auth_headers(user)
        response = client.post(
            "/account/me/password",
            headers=headers,
            json={"current_password": "testpass123", "new_password": "brand-new-pass"},
        )
        assert response.status_code == 200, response.text

        old_login = client.post("/auth/login", json={"email": user.email, "password": "testpass123"})
        assert old_login.status_code == 401
        new_login = client.post("/auth/login", json={"email": user.email, "password": "brand-new-pass"})
        assert new_login.status_code == 200

    def test_change_password_wrong_current(self, client, user_factory, auth_headers):
        response = client.post(
            "/account/me/password",
            headers=auth_headers(user_factory()),
            json={"current_password": "wrong-password", "new_password": "brand-new-pass"},
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_change_password_must_differ(self, client, user_factory, auth_headers):
        response = client.post(
            "/account/me/password",
            headers=auth_headers(user_factory()),
            json={"current_password": "testpass123", "new_password": "testpass123"},
        )
        assert response.status_code == 422
