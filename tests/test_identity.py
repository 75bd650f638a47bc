import pytest

from auth.github_oauth import GitHubOAuthClient
from auth.identity import EmailRecord, is_allowed_email, select_primary_email, verify_identity
from errors import DomainNotAllowed, IdentityUnresolved

from .helpers import fake_response


def test_record_from_github():
    rec = EmailRecord.from_github({"email": " dev@example.com ", "primary": True, "verified": True})
    assert rec == EmailRecord("dev@example.com", True, True)


@pytest.mark.parametrize("raw", [None, "dev@example.com", {}, {"email": ""}, {"email": 42}])
def test_record_from_github_skips_junk(raw):
    assert EmailRecord.from_github(raw) is None


def test_truthy_non_bool_flags_are_not_trusted():
    rec = EmailRecord.from_github({"email": "dev@example.com", "primary": "yes", "verified": 1})
    assert not rec.is_primary
    assert not rec.is_verified


def test_select_primary_email():
    records = [
        EmailRecord("secondary@example.com", False, True),
        EmailRecord("unverified@example.com", True, False),
        EmailRecord("primary@example.com", True, True),
        EmailRecord("later@example.com", True, True),
    ]
    assert select_primary_email(records) == "primary@example.com"


def test_select_primary_email_none_qualifies():
    assert select_primary_email([EmailRecord("a@example.com", True, False)]) is None
    assert select_primary_email([]) is None


@pytest.mark.parametrize("email,allowed", [
    ("user@example.com", True),
    ("User@EXAMPLE.com", True),
    ("user@evilexample.com", False),
    ("user@example.com.evil.net", False),
    ("user@sub.example.com", False),
    ("example.com", False),
    ("@example.com", False),
    ("user@other.org", False),
    ("user@example.com@evil.net", False),
])
def test_is_allowed_email(email, allowed):
    assert is_allowed_email(email, "example.com") is allowed


def test_verify_identity(auth_settings, http):
    http.get.return_value = fake_response(200, [
        {"email": "dev@users.noreply.github.com", "primary": False, "verified": True},
        {"email": "dev@example.com", "primary": True, "verified": True},
    ])
    client = GitHubOAuthClient(auth_settings, session=http)
    assert verify_identity(client, "gho_abc", "example.com") == "dev@example.com"


def test_verify_identity_unresolved(auth_settings, http):
    http.get.return_value = fake_response(200, [{"email": "dev@example.com", "primary": True, "verified": False}])
    client = GitHubOAuthClient(auth_settings, session=http)
    with pytest.raises(IdentityUnresolved):
        verify_identity(client, "gho_abc", "example.com")


def test_verify_identity_lookalike_domain(auth_settings, http):
    http.get.return_value = fake_response(200, [{"email": "dev@evilexample.com", "primary": True, "verified": True}])
    client = GitHubOAuthClient(auth_settings, session=http)
    with pytest.raises(DomainNotAllowed) as excinfo:
        verify_identity(client, "gho_abc", "example.com")
    assert excinfo.value.domain == "evilexample.com"
    assert excinfo.value.status_code == 403
    assert excinfo.value.message == "Access restricted to @example.com users"
