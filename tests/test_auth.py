"""
Unit tests for token checks (apiscope/auth.py).

validate_token() is the gate in front of everything else: the server refuses
to start without a token in the API token format. detect_token_type() decides
whether implicit scope detection runs and which access warnings are shown.
"""

import pytest

from apiscope.auth import AuthError, TokenType, detect_token_type, validate_token


class TestDetectTokenType:
    """Tests for detect_token_type()."""

    @pytest.mark.parametrize(
        "token,expected",
        [
            ("dp.st.dev.abcdef123456", TokenType.SERVICE_TOKEN),
            ("dp.sa.abcdef123456", TokenType.SERVICE_ACCOUNT),
            ("dp.pt.abcdef123456", TokenType.PERSONAL),
            ("dp.ct.abcdef123456", TokenType.CLI),
            ("dp.scim.abcdef123456", TokenType.SCIM),
        ],
    )
    def test_known_prefixes(self, token, expected):
        assert detect_token_type(token) is expected

    @pytest.mark.parametrize(
        "token",
        [
            None,
            "",
            "   ",
            "ghp_abcdef123456",  # not an API token at all
            "dp.xx.abcdef123456",  # unknown type segment
            "dp.st",  # no body
            "dp.st.",  # empty body
        ],
    )
    def test_unknown_tokens(self, token):
        assert detect_token_type(token) is TokenType.UNKNOWN


class TestValidateToken:
    """Tests for validate_token()."""

    # ----- Happy path -----

    def test_service_token_is_scoped(self):
        info = validate_token("dp.st.dev.abcdef123456")

        assert info.token == "dp.st.dev.abcdef123456"
        assert info.token_type is TokenType.SERVICE_TOKEN
        assert info.is_scoped

    def test_personal_token_is_not_scoped(self):
        info = validate_token("dp.pt.abcdef123456")

        assert info.token_type is TokenType.PERSONAL
        assert not info.is_scoped

    def test_surrounding_whitespace_is_stripped(self):
        """Tokens pasted into .env files often carry a trailing newline."""
        info = validate_token("  dp.pt.abcdef123456\n")

        assert info.token == "dp.pt.abcdef123456"

    def test_unrecognized_type_is_accepted_as_unknown(self):
        """The format check only needs the prefix; the type may be new to us."""
        info = validate_token("dp.new.abcdef123456")

        assert info.token_type is TokenType.UNKNOWN

    # ----- Missing / malformed token -----

    @pytest.mark.parametrize("token", [None, "", "   "])
    def test_missing_token_raises_auth_error(self, token):
        with pytest.raises(AuthError, match="Not authenticated"):
            validate_token(token)

    def test_wrong_format_raises_auth_error(self):
        with pytest.raises(AuthError, match="valid API token format") as exc_info:
            validate_token("Bearer abcdef123456")

        assert "'dp.' prefix" in exc_info.value.message
