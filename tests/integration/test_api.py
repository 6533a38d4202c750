"""
Integration tests for API endpoints.
"""

import pytest

from bookshop.auth.service import FORGOT_PASSWORD_MESSAGE

pytestmark = pytest.mark.asyncio


async def register(client, username: str, password: str = "pw123456") -> dict:
    response = await client.post(
        "/auth/register",
        json={"username": username, "email": f"{username}@example.com", "password": password},
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def create_book(client, token: str, **overrides) -> dict:
    payload = {
        "title": "Dune",
        "description": "Desert planet, spice, politics.",
        "price": 19.99,
        "category": "Science Fiction",
        "author": "Frank Herbert",
    }
    payload.update(overrides)
    response = await client.post("/my-books", json=payload, headers=bearer(token))
    assert response.status_code == 201, response.text
    return response.json()["data"]


def assert_error(response, status_code: int, code: str) -> dict:
    assert response.status_code == status_code, response.text
    body = response.json()
    assert body["success"] is False
    assert body["code"] == code
    assert body["error"]
    assert "timestamp" in body
    return body


class TestSystemEndpoints:
    """Tests for root and health endpoints."""

    async def test_root(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["name"] == "Bookshop"

    async def test_health_check(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"] == {"database": "healthy", "redis": "healthy"}

    async def test_request_id_header(self, client):
        response = await client.get("/books", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"

    async def test_unknown_route_is_enveloped(self, client):
        response = await client.get("/no-such-thing")
        assert_error(response, 404, "NOT_FOUND")


class TestAuthEndpoints:
    """Tests for registration, login and logout."""

    async def test_register(self, client):
        data = await register(client, "alice")

        assert data["user"]["username"] == "alice"
        assert data["user"]["email"] == "alice@example.com"
        assert "password" not in data["user"]
        assert "password_hash" not in data["user"]
        assert data["token"]

    async def test_register_duplicate(self, client):
        await register(client, "alice")

        response = await client.post(
            "/auth/register",
            json={"username": "alice", "email": "new@example.com", "password": "pw123456"},
        )

        body = assert_error(response, 409, "CONFLICT")
        assert body["error"] == "Username or email already exists"

    @pytest.mark.parametrize(
        "payload, field",
        [
            ({"username": "al", "email": "al@example.com", "password": "pw123456"}, "username"),
            ({"username": "alice", "email": "not-an-email", "password": "pw123456"}, "email"),
            ({"username": "alice", "email": "alice@example.com", "password": "short"}, "password"),
        ],
    )
    async def test_register_validation(self, client, payload, field):
        response = await client.post("/auth/register", json=payload)

        body = assert_error(response, 400, "VALIDATION_ERROR")
        assert body["error"].startswith(f"{field}: ")

    async def test_login_with_email(self, client):
        registered = await register(client, "alice")

        response = await client.post(
            "/auth/login",
            json={"username_or_email": "alice@example.com", "password": "pw123456"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user"]["id"] == registered["user"]["id"]
        assert data["token"] != registered["token"]

    async def test_login_with_mixed_case_email_domain(self, client):
        response = await client.post(
            "/auth/register",
            json={"username": "alice", "email": "Alice@Example.COM", "password": "pw123456"},
        )
        assert response.status_code == 201
        assert response.json()["data"]["user"]["email"] == "Alice@example.com"

        for identifier in ("Alice@Example.COM", "Alice@example.com"):
            response = await client.post(
                "/auth/login",
                json={"username_or_email": identifier, "password": "pw123456"},
            )
            assert response.status_code == 200

    async def test_login_wrong_password(self, client):
        await register(client, "alice")

        response = await client.post(
            "/auth/login",
            json={"username_or_email": "alice", "password": "wrong-password"},
        )

        body = assert_error(response, 401, "INVALID_CREDENTIALS")
        assert body["error"] == "Invalid credentials"

    async def test_logout_revokes_token(self, client):
        token = (await register(client, "alice"))["token"]

        response = await client.post("/auth/logout", headers=bearer(token))
        assert response.json() == {"success": True, "message": "Logged out successfully"}

        response = await client.get("/profile", headers=bearer(token))
        assert_error(response, 401, "UNAUTHORIZED")

        # Revoked tokens can still be "logged out"
        response = await client.post("/auth/logout", headers=bearer(token))
        assert response.status_code == 200

    async def test_logout_requires_header(self, client):
        response = await client.post("/auth/logout")

        body = assert_error(response, 401, "UNAUTHORIZED")
        assert body["error"] == "No token provided"


class TestPasswordResetEndpoints:

    async def test_unknown_email_gets_same_answer(self, client, mailer):
        response = await client.post("/auth/forgot-password", json={"email": "nobody@example.com"})

        assert response.status_code == 200
        assert response.json()["message"] == FORGOT_PASSWORD_MESSAGE
        assert mailer.sent == []

    async def test_reset_flow(self, client, mailer):
        await register(client, "alice")

        response = await client.post("/auth/forgot-password", json={"email": "alice@example.com"})
        assert response.json()["message"] == FORGOT_PASSWORD_MESSAGE
        otp = mailer.last_otp_for("alice@example.com")

        reset = {
            "email": "alice@example.com",
            "otp": otp,
            "new_password": "newpass1",
            "confirm_password": "newpass1",
        }
        response = await client.post("/auth/reset-password", json=reset)
        assert response.json() == {"success": True, "message": "Password reset successfully"}

        response = await client.post("/auth/reset-password", json=reset)
        assert_error(response, 400, "INVALID_OR_EXPIRED_OTP")

        response = await client.post(
            "/auth/login",
            json={"username_or_email": "alice", "password": "newpass1"},
        )
        assert response.status_code == 200

    async def test_mismatched_confirmation(self, client):
        response = await client.post(
            "/auth/reset-password",
            json={
                "email": "alice@example.com",
                "otp": "123456",
                "new_password": "newpass1",
                "confirm_password": "newpass2",
            },
        )

        body = assert_error(response, 400, "VALIDATION_ERROR")
        assert "Passwords don't match" in body["error"]

    async def test_malformed_code(self, client):
        response = await client.post(
            "/auth/reset-password",
            json={
                "email": "alice@example.com",
                "otp": "12ab",
                "new_password": "newpass1",
                "confirm_password": "newpass1",
            },
        )

        assert_error(response, 400, "VALIDATION_ERROR")


class TestProfileEndpoints:

    async def test_requires_token(self, client):
        response = await client.get("/profile")
        assert_error(response, 401, "UNAUTHORIZED")

    async def test_rejects_bad_token(self, client):
        response = await client.get("/profile", headers=bearer("not-a-token"))

        body = assert_error(response, 401, "UNAUTHORIZED")
        assert body["error"] == "Invalid or expired token"

    async def test_get_and_update(self, client):
        token = (await register(client, "alice"))["token"]

        response = await client.get("/profile", headers=bearer(token))
        assert response.json()["data"]["username"] == "alice"

        response = await client.put("/profile", json={"username": "alicia"}, headers=bearer(token))
        assert response.status_code == 200
        assert response.json()["data"]["username"] == "alicia"
        assert response.json()["data"]["email"] == "alice@example.com"

    async def test_update_conflict(self, client):
        token = (await register(client, "alice"))["token"]
        await register(client, "bob")

        response = await client.put("/profile", json={"username": "bob"}, headers=bearer(token))

        assert_error(response, 409, "CONFLICT")

    async def test_change_password(self, client):
        token = (await register(client, "alice"))["token"]

        response = await client.patch(
            "/profile/change-password",
            json={"current_password": "wrong-one", "new_password": "newpass1", "confirm_password": "newpass1"},
            headers=bearer(token),
        )
        assert_error(response, 400, "INCORRECT_PASSWORD")

        response = await client.patch(
            "/profile/change-password",
            json={"current_password": "pw123456", "new_password": "newpass1", "confirm_password": "newpass1"},
            headers=bearer(token),
        )
        assert response.json() == {"success": True, "message": "Password changed successfully"}


class TestMyBooksEndpoints:

    async def test_create_book(self, client, sample_book_data):
        token = (await register(client, "alice"))["token"]

        response = await client.post("/my-books", json=sample_book_data, headers=bearer(token))

        assert response.status_code == 201
        book = response.json()["data"]
        assert book["title"] == "Dune"
        assert book["price"] == "19.99"
        assert book["author"] == "Frank Herbert"
        assert book["category"] == "Science Fiction"
        assert sorted(book["tags"]) == ["classic", "space opera"]
        assert book["thumbnail"] == "https://example.com/dune.jpg"

    async def test_create_requires_token(self, client, sample_book_data):
        response = await client.post("/my-books", json=sample_book_data)
        assert_error(response, 401, "UNAUTHORIZED")

    async def test_duplicate_title_across_owners(self, client):
        alice = (await register(client, "alice"))["token"]
        bob = (await register(client, "bob"))["token"]
        await create_book(client, alice)

        response = await client.post(
            "/my-books",
            json={
                "title": "Dune",
                "description": "Another one.",
                "price": 5,
                "category": "Other",
                "author": "Someone",
            },
            headers=bearer(bob),
        )

        body = assert_error(response, 409, "DUPLICATE_TITLE")
        assert body["error"] == "A book with this title already exists"

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"price": 0}, "price"),
            ({"price": -3}, "price"),
            ({"price": 12345678901}, "price"),
            ({"price": "9999999999.99"}, "price"),
            ({"title": ""}, "title"),
            ({"category": "   "}, "category"),
            ({"thumbnail": "not a url"}, "thumbnail"),
            ({"tags": ["x" * 51]}, "tags"),
        ],
    )
    async def test_create_validation(self, client, overrides, field):
        token = (await register(client, "alice"))["token"]
        payload = {
            "title": "Dune",
            "description": "Desert planet.",
            "price": 19.99,
            "category": "Science Fiction",
            "author": "Frank Herbert",
        }
        payload.update(overrides)

        response = await client.post("/my-books", json=payload, headers=bearer(token))

        body = assert_error(response, 400, "VALIDATION_ERROR")
        assert field in body["error"]

    async def test_price_limits(self, client):
        token = (await register(client, "alice"))["token"]
        book = await create_book(client, token, price="99999999.99")
        assert book["price"] == "99999999.99"

        response = await client.patch(
            f"/my-books/{book['id']}", json={"price": "100000000"}, headers=bearer(token)
        )
        body = assert_error(response, 400, "VALIDATION_ERROR")
        assert body["error"].startswith("price: ")

        response = await client.patch(f"/my-books/{book['id']}", json={"price": 19.999}, headers=bearer(token))
        assert response.json()["data"]["price"] == "20.00"

    async def test_update_tag_semantics(self, client):
        token = (await register(client, "alice"))["token"]
        book = await create_book(client, token, tags=["classic", "epic"])

        response = await client.patch(f"/my-books/{book['id']}", json={"price": 9.5}, headers=bearer(token))
        assert response.json()["data"]["price"] == "9.50"
        assert sorted(response.json()["data"]["tags"]) == ["classic", "epic"]

        response = await client.patch(f"/my-books/{book['id']}", json={"tags": ["desert"]}, headers=bearer(token))
        assert response.json()["data"]["tags"] == ["desert"]

        response = await client.patch(f"/my-books/{book['id']}", json={"tags": []}, headers=bearer(token))
        assert response.json()["data"]["tags"] == []

    async def test_other_account_cannot_touch_book(self, client):
        alice = (await register(client, "alice"))["token"]
        bob = (await register(client, "bob"))["token"]
        book = await create_book(client, alice)

        response = await client.patch(f"/my-books/{book['id']}", json={"title": "Mine now"}, headers=bearer(bob))
        body = assert_error(response, 404, "NOT_FOUND_OR_FORBIDDEN")
        assert body["error"] == "Book not found or you do not have permission to edit it"

        response = await client.delete(f"/my-books/{book['id']}", headers=bearer(bob))
        assert_error(response, 404, "NOT_FOUND_OR_FORBIDDEN")

        response = await client.get(f"/books/{book['id']}")
        assert response.json()["data"]["title"] == "Dune"

    async def test_delete_book(self, client):
        token = (await register(client, "alice"))["token"]
        book = await create_book(client, token, tags=["classic"])

        response = await client.delete(f"/my-books/{book['id']}", headers=bearer(token))
        assert response.json() == {"success": True, "message": "Book deleted successfully"}

        response = await client.get(f"/books/{book['id']}")
        assert_error(response, 404, "NOT_FOUND")

        response = await client.delete(f"/my-books/{book['id']}", headers=bearer(token))
        assert_error(response, 404, "NOT_FOUND_OR_FORBIDDEN")

    async def test_list_own_books_ascending(self, client):
        alice = (await register(client, "alice"))["token"]
        bob = (await register(client, "bob"))["token"]
        await create_book(client, alice, title="Charlie")
        await create_book(client, alice, title="Alpha")
        await create_book(client, bob, title="Bravo")

        response = await client.get("/my-books", headers=bearer(alice))

        body = response.json()
        assert [b["title"] for b in body["data"]] == ["Alpha", "Charlie"]
        assert body["pagination"] == {"page": 1, "limit": 10, "total": 2, "total_pages": 1}


class TestPublicBooksEndpoints:

    async def test_pagination(self, client):
        token = (await register(client, "alice"))["token"]
        for title in ("Alpha", "Bravo", "Charlie", "Delta", "Echo"):
            await create_book(client, token, title=title)

        sizes = []
        for page in (1, 2, 3):
            response = await client.get("/books", params={"page": page, "limit": 2})
            body = response.json()
            sizes.append(len(body["data"]))
            assert body["pagination"]["total"] == 5
            assert body["pagination"]["total_pages"] == 3

        assert sizes == [2, 2, 1]

    async def test_default_order_is_descending(self, client):
        token = (await register(client, "alice"))["token"]
        for title in ("Alpha", "Bravo", "Charlie"):
            await create_book(client, token, title=title)

        response = await client.get("/books")
        assert [b["title"] for b in response.json()["data"]] == ["Charlie", "Bravo", "Alpha"]

    async def test_filters(self, client):
        token = (await register(client, "alice"))["token"]
        await create_book(client, token, title="Dune", price=19.99, category="Science Fiction")
        await create_book(client, token, title="Emma", price=7.5, category="Classics")

        response = await client.get("/books", params={"category": "science"})
        assert [b["title"] for b in response.json()["data"]] == ["Dune"]

        response = await client.get("/books", params={"min_price": "5", "max_price": "10"})
        assert [b["title"] for b in response.json()["data"]] == ["Emma"]

        response = await client.get("/books", params={"title": "EM"})
        assert [b["title"] for b in response.json()["data"]] == ["Emma"]

    @pytest.mark.parametrize(
        "params",
        [
            {"page": 0},
            {"limit": 0},
            {"limit": 101},
            {"sort_order": "sideways"},
            {"min_price": -1},
            {"min_price": 10, "max_price": 5},
        ],
    )
    async def test_invalid_filters(self, client, params):
        response = await client.get("/books", params=params)
        assert_error(response, 400, "VALIDATION_ERROR")

    async def test_book_details(self, client):
        token = (await register(client, "alice"))["token"]
        created = await create_book(client, token, tags=["classic"])

        response = await client.get(f"/books/{created['id']}")

        assert response.status_code == 200
        book = response.json()["data"]
        assert book["title"] == "Dune"
        assert book["tags"] == ["classic"]
        assert book["creator_id"] == created["creator_id"]

    async def test_missing_book(self, client):
        response = await client.get("/books/9999")

        body = assert_error(response, 404, "NOT_FOUND")
        assert body["error"] == "Book not found"


class TestUsersEndpoints:

    async def test_crud(self, client):
        response = await client.post(
            "/users",
            json={"username": "carol", "email": "carol@example.com", "password": "pw123456"},
        )
        assert response.status_code == 201
        user_id = response.json()["data"]["id"]

        response = await client.get("/users")
        assert [u["username"] for u in response.json()["data"]] == ["carol"]

        response = await client.put(f"/users/{user_id}", json={"email": "c@example.com"})
        assert response.json()["data"]["email"] == "c@example.com"

        response = await client.delete(f"/users/{user_id}")
        assert response.json()["data"] == {"id": user_id}

        response = await client.get(f"/users/{user_id}")
        assert_error(response, 404, "NOT_FOUND")

    async def test_lookup_by_email(self, client):
        await register(client, "alice")
        bob = (await register(client, "bob"))["user"]

        response = await client.get("/users", params={"email": "bob@example.com"})
        assert [u["id"] for u in response.json()["data"]] == [bob["id"]]

        response = await client.get("/users", params={"email": "nobody@example.com"})
        assert response.json()["data"] == []

        response = await client.get("/users", params={"email": "not-an-email"})
        assert_error(response, 400, "VALIDATION_ERROR")

    async def test_owner_of_books_cannot_be_deleted(self, client):
        registered = await register(client, "alice")
        await create_book(client, registered["token"])

        response = await client.delete(f"/users/{registered['user']['id']}")

        assert_error(response, 409, "CONFLICT")
