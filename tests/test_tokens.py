from datetime import datetime, timedelta, timezone

import jwt
import pytest

from auth.tokens import issue_token, verify_token
from errors import InvalidToken

SECRET = "l2k3j4lkjlkdsj"


def test_issue_and_verify():
    token = issue_token("a@x.com", SECRET)
    assert verify_token(token, SECRET) == "a@x.com"


def test_token_expires_one_hour_after_issue():
    issued = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    claims = jwt.decode(issue_token("a@x.com", SECRET, issued_at=issued), SECRET,
                        algorithms=["HS256"], options={"verify_exp": False})
    assert claims["exp"] - claims["iat"] == 3600
    assert claims["email"] == "a@x.com"


def test_token_valid_just_before_expiry():
    issued = datetime.now(timezone.utc) - timedelta(minutes=59)
    assert verify_token(issue_token("a@x.com", SECRET, issued_at=issued), SECRET) == "a@x.com"


def test_expired_token_rejected():
    issued = datetime.now(timezone.utc) - timedelta(hours=1, seconds=1)
    with pytest.raises(InvalidToken):
        verify_token(issue_token("a@x.com", SECRET, issued_at=issued), SECRET)


def test_other_secret_rejected():
    token = issue_token("a@x.com", "nottherightsecret")
    with pytest.raises(InvalidToken):
        verify_token(token, SECRET)


@pytest.mark.parametrize("token", ["", "BOGUS", "a.b.c", "BOGUS BOGUS"])
def test_garbage_rejected(token):
    with pytest.raises(InvalidToken):
        verify_token(token, SECRET)


def test_missing_claims_rejected():
    exp = datetime.now(timezone.utc) + timedelta(hours=1)
    without_email = jwt.encode({"exp": exp}, SECRET, algorithm="HS256")
    without_exp = jwt.encode({"email": "a@x.com"}, SECRET, algorithm="HS256")
    non_string_email = jwt.encode({"email": 7, "exp": exp}, SECRET, algorithm="HS256")
    for token in (without_email, without_exp, non_string_email):
        with pytest.raises(InvalidToken):
            verify_token(token, SECRET)


def test_unsigned_token_rejected():
    exp = datetime.now(timezone.utc) + timedelta(hours=1)
    token = jwt.encode({"email": "a@x.com", "exp": exp}, None, algorithm="none")
    with pytest.raises(InvalidToken):
        verify_token(token, SECRET)


def test_failure_messages_do_not_reveal_cause():
    expired = issue_token("a@x.com", SECRET, issued_at=datetime.now(timezone.utc) - timedelta(hours=2))
    forged = issue_token("a@x.com", "other")
    messages = set()
    for token in (expired, forged, "garbage"):
        with pytest.raises(InvalidToken) as excinfo:
            verify_token(token, SECRET)
        messages.add(excinfo.value.message)
    assert messages == {"Invalid token"}
