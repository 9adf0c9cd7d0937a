from datetime import date

from sqlmodel import select

from hearthboard.models import ChoreCompletion


def test_dashboard_lists_today(authed_client):
    alice = authed_client.post("/api/users", json={"name": "Alice", "color": "#f00"}).json()
    authed_client.post("/api/chores", json={"name": "Feed the cat", "assignedUserIds": [alice["id"]]})
    recipe = authed_client.post("/api/recipes", json={"name": "Lasagna"}).json()
    authed_client.post(
        "/api/meal-plans",
        json={"date": date.today().isoformat(), "mealType": "dinner", "recipeId": recipe["id"]},
    )

    resp = authed_client.get("/")
    assert resp.status_code == 200
    assert "Family!" in resp.text
    assert "Alice" in resp.text
    assert "Feed the cat" in resp.text
    assert f'href="/cook/{recipe["id"]}"' in resp.text


def test_cook_page(authed_client):
    recipe = authed_client.post(
        "/api/recipes",
        json={
            "name": "Pancakes",
            "ingredients": [{"name": "flour", "quantity": "2", "unit": "cups"}],
            "steps": ["Whisk.", "Fry."],
            "servings": 4,
        },
    ).json()
    resp = authed_client.get(f"/cook/{recipe['id']}")
    assert resp.status_code == 200
    assert "Whisk." in resp.text
    assert "2 cups flour" in resp.text
    assert "Serves 4" in resp.text
    assert authed_client.get("/cook/999").status_code == 404


def test_logout_page_redirects_to_login(authed_client):
    resp = authed_client.post("/logout", follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/login"
    assert authed_client.get("/", follow_redirects=False).status_code == 307


def test_users_create_and_list(authed_client):
    first = authed_client.post(
        "/api/users", json={"name": "Alice", "color": "#f00", "emoji": "\U0001F98A"}
    )
    assert first.status_code == 201
    assert first.json()["pointsBalance"] == 0
    authed_client.post("/api/users", json={"name": "Bob", "color": "#00f"})
    assert [u["name"] for u in authed_client.get("/api/users").json()] == ["Alice", "Bob"]

    assert authed_client.post("/api/users", json={"name": "Cara"}).status_code == 400
    assert authed_client.post("/api/users", json={"name": "", "color": "#0f0"}).status_code == 400


def test_delete_user_removes_completions(authed_client, session):
    alice = authed_client.post("/api/users", json={"name": "Alice", "color": "#f00"}).json()
    chore = authed_client.post(
        "/api/chores", json={"name": "Dishes", "assignedUserIds": [alice["id"]]}
    ).json()
    authed_client.post(
        "/api/chores/complete",
        json={"choreId": chore["id"], "userId": alice["id"], "date": "2024-06-10"},
    )

    assert authed_client.delete(f"/api/users/{alice['id']}").json() == {"success": True}
    assert authed_client.get("/api/users").json() == []
    assert authed_client.get(f"/api/chores/{chore['id']}").json()["assignedUsers"] == []
    assert session.exec(select(ChoreCompletion)).all() == []
    assert authed_client.delete(f"/api/users/{alice['id']}").status_code == 404


def test_pantry_crud_and_order(authed_client):
    authed_client.post("/api/pantry", json={"name": "Rice", "quantity": 2, "unit": "kg"})
    milk = authed_client.post(
        "/api/pantry", json={"name": "Milk", "expiresAt": "2024-06-20"}
    ).json()
    authed_client.post("/api/pantry", json={"name": "Yogurt", "expiresAt": "2024-06-12"})
    authed_client.post("/api/pantry", json={"name": "Beans"})

    names = [i["name"] for i in authed_client.get("/api/pantry").json()]
    assert names == ["Yogurt", "Milk", "Beans", "Rice"]

    updated = authed_client.patch(
        f"/api/pantry/{milk['id']}", json={"expiresAt": None, "quantity": 1}
    ).json()
    assert updated["expiresAt"] is None
    assert updated["quantity"] == 1

    assert authed_client.delete(f"/api/pantry/{milk['id']}").json() == {"success": True}
    assert authed_client.patch(f"/api/pantry/{milk['id']}", json={"quantity": 1}).status_code == 404
    assert authed_client.post("/api/pantry", json={"quantity": 1}).status_code == 400
