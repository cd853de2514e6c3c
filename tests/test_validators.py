"""
Unit Tests for Validators
=========================
"""

import pytest

from querygenie.utils.validators import (
    UNSAFE_QUERY_MESSAGE,
    sanitize_query,
    strip_comments,
    validate_natural_query,
    validate_query_safety,
)


class TestValidateNaturalQuery:
    """Tests for question validation."""

    def test_valid_question(self) -> None:
        assert validate_natural_query("show all users", max_length=1000) == (True, "")

    @pytest.mark.parametrize("question", ["", "   ", "\n\t"])
    def test_empty_question(self, question: str) -> None:
        is_valid, message = validate_natural_query(question, max_length=1000)
        assert not is_valid
        assert message == "Query cannot be empty"

    def test_boundary_length(self) -> None:
        assert validate_natural_query("x" * 1000, max_length=1000)[0]

        is_valid, message = validate_natural_query("x" * 1001, max_length=1000)
        assert not is_valid
        assert "1000" in message
        assert "1001" in message

    def test_non_string(self) -> None:
        is_valid, message = validate_natural_query(42, max_length=1000)
        assert not is_valid
        assert "int" in message


class TestValidateQuerySafety:
    """Tests for the destructive-operation denylist."""

    @pytest.mark.parametrize("query", [
        "db.dropDatabase()",
        "DB.DROPDATABASE()",
        "db.dropCollection('users')",
        "db.users.remove({})",
        "db.users.deleteMany({})",
        "db.orders.drop()",
        "db.adminCommand({ shutdown: 1 })",
        "db.users.find({}); db.users.drop()",
    ])
    def test_dangerous_queries(self, query: str) -> None:
        assert validate_query_safety(query) == (False, UNSAFE_QUERY_MESSAGE)

    @pytest.mark.parametrize("query", [
        "db.users.find({})",
        "db.orders.aggregate([{ $match: { qty: { $gt: 1 } } }])",
        "db.users.countDocuments({ active: true })",
        "db.getCollectionNames()",
    ])
    def test_safe_queries(self, query: str) -> None:
        assert validate_query_safety(query) == (True, "")


class TestSanitizeQuery:
    def test_strips_control_characters_and_whitespace(self) -> None:
        assert sanitize_query("  show\x00 users\x1f \n") == "show users"

    def test_keeps_unicode(self) -> None:
        assert sanitize_query("trouve les résumés") == "trouve les résumés"


class TestStripComments:
    def test_line_and_block_comments(self) -> None:
        query = "// all users\ndb.users.find(/* everything */ {})"
        assert strip_comments(query) == "db.users.find( {})"

    def test_comment_markers_inside_strings_are_kept(self) -> None:
        query = "db.a.find({u: 'http://x/*y*/'}) // trailing"
        assert strip_comments(query) == "db.a.find({u: 'http://x/*y*/'})"

    def test_escaped_quote_inside_string(self) -> None:
        query = 'db.a.find({"q": "say \\"//hi\\""})'
        assert strip_comments(query) == query
