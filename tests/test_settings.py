import pytest
from pydantic import ValidationError

from member_onboarding.core.settings import AppSettings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in (
        "REQUIRED_COMMITTEE_ACTIONS",
        "REJECTION_STAGES",
        "SQLALCHEMY_DATABASE_URI",
        "ENTRA_TENANT_ID",
        "ENTRA_CLIENT_ID",
        "ENTRA_CLIENT_SECRET",
        "EMAIL_SMTP_PORT",
        "EMAIL_USE_TLS",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = AppSettings()

    config = settings.workflow_config
    assert config["REQUIRED_COMMITTEE_ACTIONS"] == 2
    assert config["INITIAL_STATUS"] == "pendingFormSubmission"
    assert config["TERMINAL_STATUSES"] == ["active", "rejected"]
    assert config["REJECTION_STAGES"]["pendingCEOApproval"] == {"stage": "ceo", "order": 2}
    assert settings.sqlalchemy_database_uri.startswith("sqlite:///")
    assert settings.sqlalchemy_database_uri.endswith("instance/membership.db")
    assert not settings.identity.enabled


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("REQUIRED_COMMITTEE_ACTIONS", "3")
    monkeypatch.setenv("SQLALCHEMY_DATABASE_URI", "postgresql://db/members")
    monkeypatch.setenv("ENTRA_TENANT_ID", "tenant")
    monkeypatch.setenv("ENTRA_CLIENT_ID", "client")
    monkeypatch.setenv("ENTRA_CLIENT_SECRET", "secret")
    monkeypatch.setenv("EMAIL_SMTP_PORT", "2525")
    monkeypatch.setenv("EMAIL_USE_TLS", "no")

    settings = AppSettings()

    assert settings.required_committee_actions == 3
    assert settings.as_flask_config()["SQLALCHEMY_DATABASE_URI"] == "postgresql://db/members"
    assert settings.identity.enabled
    assert settings.email.smtp_port == 2525
    assert settings.email.use_tls is False


def test_quorum_must_be_positive(monkeypatch):
    monkeypatch.setenv("REQUIRED_COMMITTEE_ACTIONS", "0")

    with pytest.raises(ValidationError):
        AppSettings()


def test_rejection_stage_override(monkeypatch):
    monkeypatch.setenv(
        "REJECTION_STAGES",
        '{"pendingBoardApproval": {"stage": "board", "order": "2"}}',
    )

    assert AppSettings().rejection_stages == {
        "pendingBoardApproval": {"stage": "board", "order": 2}
    }


def test_rejection_stage_override_must_be_object(monkeypatch):
    monkeypatch.setenv("REJECTION_STAGES", "[1, 2]")

    with pytest.raises(ValueError, match="JSON object"):
        AppSettings().rejection_stages
