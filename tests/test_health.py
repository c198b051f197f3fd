"""Smoke test for application startup."""


def test_app_imports() -> None:
    """Verify the app can be imported without errors."""
    from packvault.main import app

    assert app.title == "PackVault"


def test_routes_registered() -> None:
    from packvault.main import app

    paths = app.openapi()["paths"]

    assert "/packs" in paths
    assert "/accounts/{user_id}/packs/open" in paths
    assert "/accounts/{user_id}/cards/{card_id}/sell" in paths
    assert "/accounts/{user_id}/claims/daily" in paths
    assert "/accounts/{user_id}/tasks" in paths
    assert "/accounts/{user_id}/tasks/{task_id}/claim" in paths
