"""Tests for ToolValidator."""

from codeh.tools.validation import ToolValidator
from tests.mock_tools import EchoTool, ExtraKeysTool, WriteTool


class NestedTool(ExtraKeysTool):
    @property
    def name(self) -> str:
        return "nested"

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "options": {
                    "type": "object",
                    "properties": {"depth": {"type": "integer"}},
                },
            },
        }


class TestToolValidator:
    """Test suite for ToolValidator.validate()."""

    def test_valid_args_pass(self):
        ok, err = ToolValidator.validate(EchoTool(), {"message": "hello"})
        assert ok is True
        assert err is None

    def test_valid_args_multiple_fields(self):
        ok, err = ToolValidator.validate(WriteTool(), {"path": "/tmp/x", "content": "data"})
        assert ok is True
        assert err is None

    def test_missing_required_arg_fails(self):
        ok, err = ToolValidator.validate(EchoTool(), {})
        assert ok is False
        assert "'message' is a required property" in err

    def test_missing_one_of_multiple_required(self):
        ok, err = ToolValidator.validate(WriteTool(), {"path": "/tmp/x"})
        assert ok is False
        assert "content" in err

    def test_extra_unknown_keys_rejected_by_default(self):
        ok, err = ToolValidator.validate(EchoTool(), {"message": "hello", "rogue": "value"})
        assert ok is False
        assert "rogue" in err

    def test_additional_properties_true_allows_extra_keys(self):
        ok, err = ToolValidator.validate(
            ExtraKeysTool(), {"base_param": "hello", "extra": "stuff", "another": 42}
        )
        assert ok is True
        assert err is None

    def test_type_mismatch_is_prefixed_with_path(self):
        ok, err = ToolValidator.validate(EchoTool(), {"message": 12345})
        assert ok is False
        assert err.startswith("message: ")

    def test_nested_path_in_error(self):
        ok, err = ToolValidator.validate(NestedTool(), {"options": {"depth": "deep"}})
        assert ok is False
        assert err.startswith("options.depth: ")

    def test_empty_dict_for_no_required_fields(self):
        ok, err = ToolValidator.validate(NestedTool(), {})
        assert ok is True
        assert err is None
