from click.testing import CliRunner

from app import cli as admin
from app.api.deps import verify_password
from app.models.user import User, UserRole
from app.seed import DEMO_USERS, provision_users


async def test_provision_users_is_idempotent(db):
    first = await provision_users()
    assert [created for _, created in first] == [True, True, True]

    second = await provision_users()
    assert [created for _, created in second] == [False, False, False]
    assert await User.find_all().count() == len(DEMO_USERS)

    trainee = await User.find_one(User.email == "trainee@ndma.gov.in")
    assert trainee.role == UserRole.TRAINEE
    assert trainee.district == "New Delhi"
    assert verify_password("trainee123", trainee.hashed_password)


def _fake_run(result):
    def run(coro):
        coro.close()
        return result

    return run


def test_expire_sessions_command(monkeypatch):
    monkeypatch.setattr(admin, "_run", _fake_run(2))

    result = CliRunner().invoke(admin.cli, ["expire-sessions", "--max-age-hours", "6"])

    assert result.exit_code == 0
    assert "Expired 2 attendance session(s)" in result.output


def test_provision_users_command(monkeypatch):
    monkeypatch.setattr(admin, "_run", _fake_run([("trainer@ndma.gov.in", True), ("authority@ndma.gov.in", False)]))

    result = CliRunner().invoke(admin.cli, ["provision-users"])

    assert result.exit_code == 0
    assert "created  trainer@ndma.gov.in" in result.output
    assert "exists   authority@ndma.gov.in" in result.output
