"""Integration tests for per-user features: profile, recommendations, reviews, feedback, library, chat."""

import json
from uuid import uuid4

import pytest
from httpx import AsyncClient

from pageturner.main import app

DESERT_BOOKS = json.dumps(
    [
        {"title": "Dune", "author": "Frank Herbert", "genre": "Science Fiction"},
        {"title": "The Sheltering Sky", "author": "Paul Bowles", "genre": "Fiction"},
    ]
)


async def register(client: AsyncClient) -> dict[str, str]:
    """Sign up a fresh user and return their auth headers."""
    email = f"reader_{uuid4().hex[:8]}@example.com"
    await client.post(
        "/auth/signup",
        json={"email": email, "username": f"reader_{uuid4().hex[:8]}", "password": "pass12345"},
    )
    resp = await client.post("/auth/login", json={"email": email, "password": "pass12345"})
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


# ── Profile ────────────────────────────────────────


@pytest.mark.asyncio
async def test_profile_update(client: AsyncClient):
    reader = await register(client)
    other = await register(client)
    other_email = (await client.get("/api/user/profile", headers=other)).json()["email"]

    resp = await client.put("/api/user/profile", json={"username": "renamed_reader"}, headers=reader)
    assert resp.status_code == 200
    assert resp.json()["username"] == "renamed_reader"

    resp = await client.put("/api/user/profile", json={"email": other_email}, headers=reader)
    assert resp.status_code == 400
    assert resp.json() == {"error": "This email address is already in use."}

    resp = await client.put(
        "/api/user/profile", json={"email": "fresh_address@example.com"}, headers=reader
    )
    assert resp.json()["email"] == "fresh_address@example.com"
    profile = (await client.get("/api/user/profile", headers=reader)).json()
    assert (profile["username"], profile["email"]) == ("renamed_reader", "fresh_address@example.com")


@pytest.mark.asyncio
async def test_profile_rejects_taken_username(client: AsyncClient):
    reader = await register(client)
    other = await register(client)
    taken = (await client.get("/api/user/profile", headers=other)).json()["username"]
    resp = await client.put("/api/user/profile", json={"username": taken}, headers=reader)
    assert resp.status_code == 400


# ── Recommendations ────────────────────────────────


@pytest.mark.asyncio
async def test_recommendations_anonymous_get_popular(client: AsyncClient, seed_books, make_book):
    await seed_books(make_book("Crowd Pleaser", rating=4.8))
    resp = await client.get("/api/recommendations")
    assert resp.status_code == 200
    assert resp.json()["source"] == "popular"
    assert [b["title"] for b in resp.json()["books"]] == ["Crowd Pleaser"]


@pytest.mark.asyncio
async def test_recommendations_follow_favourite_genres(
    auth_client: AsyncClient, seed_books, make_book
):
    await seed_books(
        make_book("Mistborn", genres=["Fantasy"], rating=4.6),
        make_book("The Name of the Wind", genres=["Fantasy", "Adventure"], rating=4.5),
        make_book("Gone Girl", genres=["Thriller"], rating=4.9),
    )
    resp = await auth_client.put("/api/user/preferences", json={"favoriteGenres": ["Fantasy"]})
    assert resp.status_code == 200

    resp = await auth_client.get("/api/recommendations")
    data = resp.json()
    assert data["source"] == "personalized"
    assert [b["title"] for b in data["books"]] == ["Mistborn", "The Name of the Wind"]
    assert all("Fantasy" in b["genres"] for b in data["books"])


@pytest.mark.asyncio
async def test_recommendations_from_recent_activity(
    auth_client: AsyncClient, seed_books, make_book
):
    [book] = await seed_books(make_book("Station Eleven", genres=["Dystopian"]))
    await auth_client.post("/api/user/bookmarks", json={"bookId": book.id})

    resp = await auth_client.get("/api/recommendations")
    data = resp.json()
    assert data["source"] == "ai_personalized"
    assert len(data["books"]) == 5


@pytest.mark.asyncio
async def test_recommendations_without_signals_are_popular(
    auth_client: AsyncClient, seed_books, make_book
):
    await seed_books(make_book("Crowd Pleaser", rating=4.8))
    resp = await auth_client.get("/api/recommendations")
    assert resp.json()["source"] == "popular"


# ── Reviews ────────────────────────────────────────


@pytest.mark.asyncio
async def test_review_lifecycle_keeps_running_average(
    client: AsyncClient, seed_books, make_book
):
    [book] = await seed_books(make_book("Rated Book"))
    alice = await register(client)
    bob = await register(client)

    resp = await client.post(
        f"/api/books/{book.id}/reviews", json={"rating": 4, "text": "Good"}, headers=alice
    )
    assert resp.status_code == 201
    alice_review = resp.json()
    assert alice_review["bookId"] == book.id

    resp = await client.post(
        f"/api/books/{book.id}/reviews", json={"rating": 5, "text": "Again"}, headers=alice
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": "You have already reviewed this book."}

    resp = await client.post(
        f"/api/books/{book.id}/reviews", json={"rating": 2, "text": "Meh"}, headers=bob
    )
    bob_review = resp.json()
    data = (await client.get(f"/api/books/{book.id}")).json()
    assert (data["rating"], data["reviewCount"]) == (3.0, 2)

    resp = await client.patch(f"/api/reviews/{alice_review['id']}", json={"rating": 5}, headers=alice)
    assert resp.status_code == 200
    assert resp.json()["text"] == "Good"
    data = (await client.get(f"/api/books/{book.id}")).json()
    assert (data["rating"], data["reviewCount"]) == (3.5, 2)

    resp = await client.patch(f"/api/reviews/{bob_review['id']}", json={"rating": 1}, headers=alice)
    assert resp.status_code == 403

    resp = await client.delete(f"/api/reviews/{bob_review['id']}", headers=bob)
    assert resp.status_code == 204
    data = (await client.get(f"/api/books/{book.id}")).json()
    assert (data["rating"], data["reviewCount"]) == (5.0, 1)

    resp = await client.get(f"/api/books/{book.id}/reviews")
    assert [r["id"] for r in resp.json()] == [alice_review["id"]]


@pytest.mark.asyncio
async def test_review_validation(auth_client: AsyncClient, seed_books, make_book):
    [book] = await seed_books(make_book("Rated Book"))
    resp = await auth_client.post(f"/api/books/{book.id}/reviews", json={"rating": 6, "text": ""})
    assert resp.status_code == 422

    resp = await auth_client.post("/api/books/missing/reviews", json={"rating": 3, "text": ""})
    assert resp.status_code == 404

    resp = await auth_client.patch(f"/api/reviews/{uuid4()}", json={"rating": 3})
    assert resp.status_code == 404


# ── Preferences & feedback ─────────────────────────


@pytest.mark.asyncio
async def test_preferences_partial_update(auth_client: AsyncClient):
    resp = await auth_client.get("/api/user/preferences")
    assert resp.json()["favoriteGenres"] == []

    await auth_client.put(
        "/api/user/preferences",
        json={"favoriteGenres": ["Mystery", "Mystery", "Horror"], "preferredLength": "short"},
    )
    resp = await auth_client.put("/api/user/preferences", json={"preferredMoods": ["Dark"]})
    data = resp.json()
    assert data["favoriteGenres"] == ["Mystery", "Horror"]
    assert data["preferredMoods"] == ["Dark"]
    assert data["preferredLength"] == "short"


@pytest.mark.asyncio
async def test_like_promotes_genres_and_length(auth_client: AsyncClient, seed_books, make_book):
    [book] = await seed_books(make_book("Rebecca", genres=["Mystery", "Romance"], page_count=380))

    resp = await auth_client.post("/api/user/feedback", json={"bookId": book.id, "liked": True})
    assert resp.status_code == 200
    assert resp.json() == {"message": "Thank you for your feedback!", "bookId": book.id, "liked": True}

    prefs = (await auth_client.get("/api/user/preferences")).json()
    assert prefs["favoriteGenres"] == ["Mystery", "Romance"]
    assert prefs["preferredLength"] == "medium"

    history = (await auth_client.get("/api/user/history?action=feedback")).json()["entries"]
    assert [e["bookId"] for e in history] == [book.id]


@pytest.mark.asyncio
async def test_dislike_leaves_preferences(auth_client: AsyncClient, seed_books, make_book):
    [book] = await seed_books(make_book("Rebecca", genres=["Mystery"], page_count=380))
    resp = await auth_client.post("/api/user/feedback", json={"bookId": book.id, "liked": False})
    assert resp.status_code == 200
    prefs = (await auth_client.get("/api/user/preferences")).json()
    assert prefs["favoriteGenres"] == []


@pytest.mark.asyncio
async def test_feedback_validation(auth_client: AsyncClient):
    resp = await auth_client.post("/api/user/feedback", json={"bookId": "x", "liked": "yes"})
    assert resp.status_code == 422

    resp = await auth_client.post("/api/user/feedback", json={"bookId": "missing", "liked": True})
    assert resp.status_code == 404


# ── Bookmarks, favourites & history ────────────────


@pytest.mark.asyncio
async def test_bookmarks(auth_client: AsyncClient, seed_books, make_book):
    [book] = await seed_books(make_book("Middlemarch"))

    resp = await auth_client.post("/api/user/bookmarks", json={"bookId": book.id})
    assert resp.status_code == 201
    assert [b["id"] for b in resp.json()["books"]] == [book.id]

    # Saving twice keeps one bookmark
    await auth_client.post("/api/user/bookmarks", json={"bookId": book.id})
    resp = await auth_client.get("/api/user/bookmarks")
    assert [b["title"] for b in resp.json()["books"]] == ["Middlemarch"]

    resp = await auth_client.get("/api/user/favorites")
    assert resp.json()["books"] == []

    resp = await auth_client.delete(f"/api/user/bookmarks/{book.id}")
    assert resp.status_code == 204
    resp = await auth_client.delete(f"/api/user/bookmarks/{book.id}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_saved_for_later_leaves_no_history(auth_client: AsyncClient, seed_books, make_book):
    [book] = await seed_books(make_book("Moby-Dick"))

    resp = await auth_client.post("/api/user/saved-for-later", json={"bookId": book.id})
    assert resp.status_code == 201
    resp = await auth_client.get("/api/user/saved-for-later")
    assert [b["title"] for b in resp.json()["books"]] == ["Moby-Dick"]
    assert (await auth_client.get("/api/user/bookmarks")).json()["books"] == []
    assert (await auth_client.get("/api/user/history")).json()["entries"] == []

    resp = await auth_client.delete(f"/api/user/saved-for-later/{book.id}")
    assert resp.status_code == 204


@pytest.mark.asyncio
async def test_favorite_unknown_book(auth_client: AsyncClient):
    resp = await auth_client.post("/api/user/favorites", json={"bookId": "missing"})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_history_entries_can_be_deleted(client: AsyncClient, seed_books, make_book):
    [book] = await seed_books(make_book("Middlemarch"))
    owner = await register(client)
    other = await register(client)
    await client.post("/api/user/favorites", json={"bookId": book.id}, headers=owner)

    entries = (await client.get("/api/user/history", headers=owner)).json()["entries"]
    assert [(e["action"], e["bookId"]) for e in entries] == [("favorite", book.id)]
    entry_id = entries[0]["id"]

    resp = await client.delete(f"/api/history/{entry_id}", headers=other)
    assert resp.status_code == 403

    resp = await client.delete(f"/api/history/{entry_id}", headers=owner)
    assert resp.status_code == 204
    assert (await client.get("/api/user/history", headers=owner)).json()["entries"] == []

    resp = await client.delete(f"/api/history/{entry_id}", headers=owner)
    assert resp.status_code == 404


# ── Chat ───────────────────────────────────────────


@pytest.mark.asyncio
async def test_anonymous_chat(client: AsyncClient):
    resp = await client.post("/api/chat/create", json={"message": "A heartwarming story"})
    assert resp.status_code == 200
    data = resp.json()
    assert "chatId" in data
    assert data["message"] == 'Here are some book recommendations based on your query: "A heartwarming story"'
    assert len(data["recommendations"]) == 5


@pytest.mark.asyncio
async def test_chat_session_with_feedback(auth_client: AsyncClient):
    message = "Long fantasy series with political intrigue and dragons"
    created = (await auth_client.post("/api/chat/create", json={"message": message})).json()
    chat_id = created["chatId"]
    liked_book = created["recommendations"][0]

    sessions = (await auth_client.get("/api/chat/sessions")).json()["sessions"]
    assert [s["id"] for s in sessions] == [chat_id]
    assert sessions[0]["title"] == message[:30] + "..."

    detail = (await auth_client.get(f"/api/chat/sessions/{chat_id}")).json()
    senders = [m["sender"] for m in detail["messages"]]
    assert senders == ["user", "assistant"]
    reply = detail["messages"][1]

    resp = await auth_client.post(
        "/api/chat/feedback",
        json={
            "chatId": chat_id,
            "messageId": reply["id"],
            "bookId": liked_book["id"],
            "feedback": "like",
        },
    )
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    detail = (await auth_client.get(f"/api/chat/sessions/{chat_id}")).json()
    assert detail["messages"][1]["feedback"] == {liked_book["id"]: "like"}

    prefs = (await auth_client.get("/api/user/preferences")).json()
    assert set(liked_book["genres"]) <= set(prefs["favoriteGenres"])


@pytest.mark.asyncio
async def test_chat_feedback_unknown_message(client: AsyncClient):
    created = (await client.post("/api/chat/create", json={"message": "mysteries"})).json()
    resp = await client.post(
        "/api/chat/feedback",
        json={
            "chatId": created["chatId"],
            "messageId": str(uuid4()),
            "bookId": "whatever",
            "feedback": "dislike",
        },
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_chat_session_belongs_to_owner(client: AsyncClient):
    owner = await register(client)
    other = await register(client)
    created = (
        await client.post("/api/chat/create", json={"message": "sea stories"}, headers=owner)
    ).json()

    resp = await client.get(f"/api/chat/sessions/{created['chatId']}", headers=other)
    assert resp.status_code == 403
    resp = await client.get(f"/api/chat/sessions/{uuid4()}", headers=owner)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_chat_feedback_requires_owner(client: AsyncClient):
    owner = await register(client)
    other = await register(client)
    created = (
        await client.post("/api/chat/create", json={"message": "sea stories"}, headers=owner)
    ).json()
    detail = (await client.get(f"/api/chat/sessions/{created['chatId']}", headers=owner)).json()
    body = {
        "chatId": created["chatId"],
        "messageId": detail["messages"][1]["id"],
        "bookId": created["recommendations"][0]["id"],
        "feedback": "like",
    }

    assert (await client.post("/api/chat/feedback", json=body, headers=other)).status_code == 403
    assert (await client.post("/api/chat/feedback", json=body)).status_code == 403
    assert (await client.post("/api/chat/feedback", json=body, headers=owner)).status_code == 200


@pytest.mark.asyncio
async def test_chat_regenerate(auth_client: AsyncClient, scripted_llm):
    llm = scripted_llm(reply=DESERT_BOOKS)
    app.state.llm_service = llm
    created = (
        await auth_client.post(
            "/api/chat/create",
            json={"message": "desert planet epics", "options": {"mood": "Dark"}},
        )
    ).json()
    chat_id = created["chatId"]
    detail = (await auth_client.get(f"/api/chat/sessions/{chat_id}")).json()
    question = detail["messages"][0]
    assert question["options"] == {"mood": "Dark"}

    resp = await auth_client.post(
        "/api/chat/regenerate", json={"chatId": chat_id, "messageId": question["id"]}
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["message"] == (
        'Here are some refreshed book recommendations based on your query: "desert planet epics"'
    )
    assert [b["title"] for b in data["recommendations"]] == ["Dune", "The Sheltering Sky"]
    # Same query and options, yet the provider is asked again
    assert len(llm.calls) == 2

    await auth_client.post(
        "/api/chat/regenerate",
        json={"chatId": chat_id, "messageId": question["id"], "options": {"length": "long"}},
    )
    messages = (await auth_client.get(f"/api/chat/sessions/{chat_id}")).json()["messages"]
    assert [m["sender"] for m in messages] == ["user", "assistant", "assistant", "assistant"]
    assert messages[2]["id"] == data["messageId"]
    assert messages[3]["regeneratedFrom"] == question["id"]
    assert messages[3]["options"] == {"mood": "Dark", "length": "long"}
    assert messages[1]["regeneratedFrom"] is None


@pytest.mark.asyncio
async def test_chat_regenerate_validation(client: AsyncClient):
    created = (await client.post("/api/chat/create", json={"message": "ghost stories"})).json()
    chat_id = created["chatId"]
    owner = await register(client)
    owned = (
        await client.post("/api/chat/create", json={"message": "sea stories"}, headers=owner)
    ).json()
    owned_detail = (
        await client.get(f"/api/chat/sessions/{owned['chatId']}", headers=owner)
    ).json()
    reply_id = owned_detail["messages"][1]["id"]

    resp = await client.post(
        "/api/chat/regenerate", json={"chatId": owned["chatId"], "messageId": reply_id}, headers=owner
    )
    assert resp.status_code == 400
    resp = await client.post(
        "/api/chat/regenerate", json={"chatId": chat_id, "messageId": str(uuid4())}
    )
    assert resp.status_code == 404
    resp = await client.post(
        "/api/chat/regenerate", json={"chatId": owned["chatId"], "messageId": reply_id}
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_chat_delete(client: AsyncClient):
    owner = await register(client)
    other = await register(client)
    chat_id = (
        await client.post("/api/chat/create", json={"message": "sea stories"}, headers=owner)
    ).json()["chatId"]

    resp = await client.delete("/api/chat/delete", params={"chatId": chat_id}, headers=other)
    assert resp.status_code == 403

    resp = await client.delete("/api/chat/delete", params={"chatId": chat_id}, headers=owner)
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "message": "Chat and all associated messages deleted successfully",
    }
    assert (await client.get(f"/api/chat/sessions/{chat_id}", headers=owner)).status_code == 404
    assert (await client.get("/api/chat/sessions", headers=owner)).json()["sessions"] == []

    resp = await client.delete("/api/chat/delete", params={"chatId": chat_id}, headers=owner)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_anonymous_chat_can_be_deleted(client: AsyncClient):
    chat_id = (await client.post("/api/chat/create", json={"message": "ghost stories"})).json()["chatId"]
    resp = await client.delete("/api/chat/delete", params={"chatId": chat_id})
    assert resp.status_code == 200
