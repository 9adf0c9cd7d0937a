import json

import pytest

from hearthboard.errors import BadRequest
from hearthboard.recipe_import import (
    extract_image_url,
    find_recipe_node,
    parse_duration,
    parse_instructions,
    parse_macros,
    parse_number,
    parse_recipe_html,
    parse_servings,
)

RECIPE_URL = "https://example.com/recipes/soup"

SOUP = {
    "@context": "https://schema.org",
    "@type": ["Recipe", "NewsArticle"],
    "name": "Tomato Soup",
    "description": "Weeknight soup",
    "recipeIngredient": ["2 cans tomatoes", "1 onion", "  "],
    "recipeInstructions": [
        {"@type": "HowToSection", "name": "Prep", "itemListElement": [
            {"@type": "HowToStep", "text": "Chop the onion."},
        ]},
        {"@type": "HowToStep", "text": "Simmer 20 minutes."},
        "Blend.",
    ],
    "prepTime": "PT10M",
    "cookTime": "PT1H5M",
    "recipeYield": ["4", "4 bowls"],
    "nutrition": {"calories": "210 kcal", "proteinContent": "6 g", "fatContent": "8.5 g"},
    "image": {"@type": "ImageObject", "url": "https://example.com/soup.jpg"},
}


def page(*blocks):
    scripts = "".join(
        f'<script type="application/ld+json">{block}</script>' for block in blocks
    )
    return f"<html><head>{scripts}</head><body>soup</body></html>"


def test_parse_duration():
    assert parse_duration("PT1H30M") == 90
    assert parse_duration("PT45M") == 45
    assert parse_duration("PT2H") == 120
    assert parse_duration(None) is None
    assert parse_duration("") is None
    assert parse_duration("45 minutes") is None


def test_parse_number():
    assert parse_number("250 kcal") == 250.0
    assert parse_number("12.5 g") == 12.5
    assert parse_number(7) == 7.0
    assert parse_number("none") == 0.0
    assert parse_number(None) == 0.0


def test_parse_servings():
    assert parse_servings(4) == 4
    assert parse_servings("4 servings") == 4
    assert parse_servings(["6", "6 servings"]) == 6
    assert parse_servings("Serves 4") is None
    assert parse_servings(None) is None
    assert parse_servings([]) is None


def test_extract_image_url():
    assert extract_image_url("https://x/a.jpg") == "https://x/a.jpg"
    assert extract_image_url(["https://x/b.jpg", "https://x/c.jpg"]) == "https://x/b.jpg"
    assert extract_image_url({"url": "https://x/d.jpg"}) == "https://x/d.jpg"
    assert extract_image_url([{"url": "https://x/e.jpg"}]) == "https://x/e.jpg"
    assert extract_image_url(None) is None
    assert extract_image_url([]) is None


def test_parse_instructions_shapes():
    assert parse_instructions("Mix.\n\n  Bake.  \n") == ["Mix.", "Bake."]
    assert parse_instructions(SOUP["recipeInstructions"]) == [
        "Chop the onion.",
        "Simmer 20 minutes.",
        "Blend.",
    ]
    assert parse_instructions([{"text": "  "}, 5, {"text": "Serve."}]) == ["Serve."]
    assert parse_instructions(None) == []


def test_parse_macros():
    assert parse_macros(SOUP["nutrition"]) == {
        "calories": 210.0,
        "protein": 6.0,
        "carbs": 0.0,
        "fat": 8.5,
    }
    assert parse_macros("lots") is None


def test_find_recipe_node_lookup_order():
    direct = {"@type": "Recipe", "name": "Direct", "@graph": [{"@type": "Recipe", "name": "Graph"}]}
    assert find_recipe_node(direct)["name"] == "Direct"

    graph = {"@graph": [{"@type": "WebPage"}, {"@type": "Recipe", "name": "Graph"}]}
    assert find_recipe_node(graph)["name"] == "Graph"

    bare = [{"@type": "Organization"}, {"@type": ["Recipe"], "name": "Listed"}]
    assert find_recipe_node(bare)["name"] == "Listed"

    assert find_recipe_node({"@type": "WebPage"}) is None


def test_parse_recipe_html_skips_malformed_blocks():
    html = page("{not json", json.dumps({"@type": "WebSite"}), json.dumps(SOUP))
    recipe = parse_recipe_html(html)
    assert recipe.name == "Tomato Soup"
    assert recipe.ingredients == [
        {"name": "2 cans tomatoes", "quantity": "", "unit": ""},
        {"name": "1 onion", "quantity": "", "unit": ""},
    ]
    assert recipe.prep_time == 10
    assert recipe.cook_time == 65
    assert recipe.servings == 4
    assert recipe.image_url == "https://example.com/soup.jpg"


def test_parse_recipe_html_defaults_name():
    recipe = parse_recipe_html(page(json.dumps({"@type": "Recipe"})))
    assert recipe.name == "Imported Recipe"
    assert recipe.steps == []
    assert recipe.macros is None


def test_parse_recipe_html_without_recipe():
    with pytest.raises(BadRequest):
        parse_recipe_html("<html><body>No data</body></html>")


def test_import_recipe(authed_client, mock_http):
    mock_http.add(RECIPE_URL, text=page(json.dumps({"@graph": [SOUP]})))
    resp = authed_client.post("/api/recipes/import", json={"url": RECIPE_URL})
    assert resp.status_code == 201, resp.text
    recipe = resp.json()
    assert recipe["name"] == "Tomato Soup"
    assert recipe["sourceUrl"] == RECIPE_URL
    assert recipe["steps"][0] == "Chop the onion."
    assert recipe["macros"]["calories"] == 210
    assert recipe["servings"] == 4
    assert recipe["isFavorite"] is False

    assert [str(r.url) for r in mock_http.requests] == [RECIPE_URL]
    assert len(authed_client.get("/api/recipes").json()) == 1


def test_import_recipe_fetch_failure(authed_client, mock_http):
    resp = authed_client.post("/api/recipes/import", json={"url": "https://example.com/missing"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Failed to fetch URL"}


def test_import_recipe_page_without_recipe(authed_client, mock_http):
    mock_http.add(RECIPE_URL, text="<html><body>Just a blog</body></html>")
    resp = authed_client.post("/api/recipes/import", json={"url": RECIPE_URL})
    assert resp.status_code == 400
    assert resp.json() == {"error": "No recipe data found on this page"}


def test_import_recipe_requires_http_url(authed_client, mock_http):
    assert authed_client.post("/api/recipes/import", json={"url": "ftp://x/y"}).status_code == 400
    assert authed_client.post("/api/recipes/import", json={}).status_code == 400
    assert mock_http.requests == []


def test_recipe_crud_and_filters(authed_client):
    soup = authed_client.post(
        "/api/recipes",
        json={
            "name": "Tomato Soup",
            "ingredients": [{"name": "Tomato", "quantity": 2, "unit": None}],
            "steps": ["Simmer."],
        },
    ).json()
    assert soup["ingredients"] == [{"name": "Tomato", "quantity": "2", "unit": ""}]
    authed_client.post("/api/recipes", json={"name": "Pancakes", "description": "Sunday treat"})

    favorite = authed_client.patch(f"/api/recipes/{soup['id']}", json={"isFavorite": True}).json()
    assert favorite["isFavorite"] is True

    favorites = authed_client.get("/api/recipes", params={"favorites": "true"}).json()
    assert [r["name"] for r in favorites] == ["Tomato Soup"]
    found = authed_client.get("/api/recipes", params={"search": "sunday"}).json()
    assert [r["name"] for r in found] == ["Pancakes"]

    assert authed_client.get(f"/api/recipes/{soup['id']}").json()["steps"] == ["Simmer."]
    assert authed_client.delete(f"/api/recipes/{soup['id']}").json() == {"success": True}
    assert authed_client.get(f"/api/recipes/{soup['id']}").status_code == 404
    assert authed_client.post("/api/recipes", json={"steps": []}).status_code == 400
