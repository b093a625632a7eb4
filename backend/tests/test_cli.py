"""CLI bootstrap commands."""

from phoneshop.extensions import db
from phoneshop.models import User


def test_system_init_creates_owner_once(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["system", "init", "--username", "boss", "--password", "Password123!"])
    assert result.exit_code == 0, result.output
    assert "Created owner: boss" in result.output

    again = runner.invoke(args=["system", "init", "--username", "other", "--password", "Password123!"])
    assert again.exit_code == 0
    assert "Using existing owner: boss" in again.output
    assert db.session.query(User).count() == 1


def test_system_init_rejects_weak_password(app):
    result = app.test_cli_runner().invoke(args=["system", "init", "--password", "weak"])
    assert result.exit_code != 0
    assert "Password validation failed" in result.output


def test_users_create_and_list(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create", "--username", "tech1", "--password", "Password123!", "--role", "TECHNICIAN",
    ])
    assert result.exit_code == 0, result.output

    listing = runner.invoke(args=["users", "list"])
    assert "tech1" in listing.output
    assert "TECHNICIAN" in listing.output
