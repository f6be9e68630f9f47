"""Tests for structured document errors."""

from __future__ import annotations

from scriptorium.errors import (
    UNKNOWN_POSITION,
    DocumentError,
    ErrorFrame,
    ErrorKind,
    adapter_missing,
    dependency_loop,
    execution_error,
    not_found,
    parsing_error,
    preparation_error,
)


class TestErrorFrame:
    """Tests for ErrorFrame rendering."""

    def test_full_position(self) -> None:
        """Renders name, line and column."""
        assert str(ErrorFrame("pages/home", 3, 7)) == "pages/home:3:7"

    def test_unknown_column(self) -> None:
        """Leaves out an unknown column."""
        assert str(ErrorFrame("doc", 3)) == "doc:3"

    def test_unknown_position(self) -> None:
        """Renders only the name when nothing is known."""
        frame = ErrorFrame("doc")
        assert frame.line_number == UNKNOWN_POSITION
        assert str(frame) == "doc"


class TestDocumentError:
    """Tests for DocumentError and its stack."""

    def test_push_frame_appends_outward(self) -> None:
        """Enclosing documents are appended after the origin."""
        error = parsing_error("inner", "bad", line_number=2, column_number=4)
        returned = error.push_frame("middle", 5, 1).push_frame("outer", 1)

        assert returned is error
        assert [frame.document_name for frame in error.stack] == ["inner", "middle", "outer"]
        assert error.origin == ErrorFrame("inner", 2, 4)

    def test_str_includes_trail(self) -> None:
        """String form lists the stack origin first."""
        error = parsing_error("inner", "bad", line_number=2, column_number=4)
        error.push_frame("outer", 1, 1)
        assert str(error) == "bad [inner:2:4 <- outer:1:1]"

    def test_str_without_stack(self) -> None:
        """Errors without frames render their message only."""
        assert str(DocumentError(ErrorKind.EXECUTION, "plain")) == "plain"

    def test_cause_is_chained(self) -> None:
        """The cause becomes the exception's __cause__."""
        cause = ValueError("boom")
        error = execution_error("doc", cause, line_number=4)
        assert error.__cause__ is cause
        assert error.cause is cause
        assert error.message == "ValueError: boom"

    def test_execution_error_without_message(self) -> None:
        """Uses the exception type alone when it carries no message."""
        error = execution_error("doc", KeyError())
        assert error.message == "KeyError"

    def test_to_dict(self) -> None:
        """Serialises kind, message and frames."""
        error = preparation_error("doc", "'return' outside function", line_number=1, column_number=1)
        payload = error.to_dict()

        assert payload["kind"] == "preparation"
        assert payload["message"] == "'return' outside function"
        assert payload["stack"] == [{"document": "doc", "line": 1, "column": 1}]
        assert payload["chain"] == []
        assert payload["cause"] is None


class TestFactories:
    """Tests for the error factory functions."""

    def test_not_found_has_origin_frame(self) -> None:
        """NotFound errors name the missing document."""
        error = not_found("missing", "not here")
        assert error.kind is ErrorKind.NOT_FOUND
        assert error.message == "Document not found: missing (not here)"
        assert error.origin == ErrorFrame("missing")

    def test_dependency_loop_keeps_chain(self) -> None:
        """Loop errors carry the full chain, repeated name last."""
        error = dependency_loop(("a", "b", "a"))
        assert error.kind is ErrorKind.DEPENDENCY_LOOP
        assert error.chain == ("a", "b", "a")
        assert error.message == "Document dependency loop: a -> b -> a"
        assert error.stack == []

    def test_adapter_missing_names_tag(self) -> None:
        """Adapter errors name the unsupported language."""
        error = adapter_missing("doc.rb", "rb")
        assert error.kind is ErrorKind.LANGUAGE_ADAPTER_MISSING
        assert error.message == "Adapter not available for language: rb"
        assert error.origin.document_name == "doc.rb"

    def test_error_kind_is_string(self) -> None:
        """Error kinds compare equal to their string values."""
        assert ErrorKind.PARSING == "parsing"
