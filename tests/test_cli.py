"""Flask CLI commands."""
from seisan.models import Organization, User, UserRole


def test_users_create(app, organization):
    runner = app.test_cli_runner()
    result = runner.invoke(
        args=["users", "create", "New.Hire@Seisan.co.jp", "--name", "新人 一郎",
              "--organization", "賢者商事", "--department", "経理部"],
        input="Secret1!\nSecret1!\n",
    )

    assert result.exit_code == 0, result.output
    assert "SUCCESS" in result.output
    user = User.query.filter_by(email="new.hire@seisan.co.jp").one()
    assert user.role == UserRole.EMPLOYEE
    assert user.organization_id == organization.id
    assert user.check_password("Secret1!")


def test_users_create_makes_missing_organization(app):
    runner = app.test_cli_runner()
    result = runner.invoke(
        args=["users", "create", "boss@example.jp", "--name", "社長", "--organization", "新会社", "--role", "admin"],
        input="Secret1!\nSecret1!\n",
    )

    assert result.exit_code == 0, result.output
    assert 'Created organization "新会社".' in result.output
    assert Organization.query.filter_by(name="新会社").one().members[0].role == UserRole.ADMIN


def test_users_create_rejects_duplicate(app, employee):
    runner = app.test_cli_runner()
    result = runner.invoke(
        args=["users", "create", employee.email, "--name", "重複", "--organization", "賢者商事"],
        input="Secret1!\nSecret1!\n",
    )
    assert "already registered" in result.output
    assert User.query.count() == 1


def test_retry_failed_with_nothing_to_do(app):
    result = app.test_cli_runner().invoke(args=["accounting", "retry-failed"])
    assert result.exit_code == 0
    assert "No failed syncs to retry." in result.output
