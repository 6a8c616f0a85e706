import json

import pytest

from techmaster.utils.error_monitoring import MalformedPayloadError
from techmaster.utils.json_repair import (
    parse_json_payload,
    repair_json_text,
    strip_code_fence,
    strip_trailing_commas,
)


class TestStripTrailingCommas:
    def test_object_and_array(self):
        """Commas before closing braces and brackets are removed."""
        assert json.loads(strip_trailing_commas('{"a": [1, 2,], "b": 3,}')) == {"a": [1, 2], "b": 3}

    def test_nested_structures(self):
        """Repaired nested text parses to the same value as the clean text."""
        clean = '{"outer": {"inner": [{"x": 1}, {"y": [2, 3]}]}, "z": "end"}'
        dirty = '{"outer": {"inner": [{"x": 1,}, {"y": [2, 3,],},],}, "z": "end",}'
        assert json.loads(strip_trailing_commas(dirty)) == json.loads(clean)

    def test_whitespace_between_comma_and_closer(self):
        """Newlines and spaces after the comma do not hide it."""
        dirty = '{\n  "a": 1,\n  "b": [\n    "x",\n  ],\n}'
        assert json.loads(strip_trailing_commas(dirty)) == {"a": 1, "b": ["x"]}

    def test_commas_inside_strings_untouched(self):
        """String content that looks like a trailing comma is preserved."""
        dirty = '{"code": "f(a, }", "list": "[1, ]", "q": "say \\"hi,}\\"",}'
        data = json.loads(strip_trailing_commas(dirty))
        assert data == {"code": "f(a, }", "list": "[1, ]", "q": 'say "hi,}"'}

    def test_clean_text_unchanged(self):
        """Valid JSON passes through byte for byte."""
        clean = '{"a": [1, 2], "b": {"c": "d, e"}}'
        assert strip_trailing_commas(clean) == clean


class TestStripCodeFence:
    def test_json_fence(self):
        """A fenced payload is unwrapped."""
        assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_unfenced(self):
        """Unfenced text is returned as-is."""
        assert strip_code_fence('{"a": 1}') == '{"a": 1}'

    def test_repair_combines_both(self):
        """Fence and trailing commas are handled together."""
        assert json.loads(repair_json_text('```json\n{"a": [1,],}\n```')) == {"a": [1]}


class TestParseJsonPayload:
    def test_returns_object(self):
        """A JSON object decodes to a dict."""
        assert parse_json_payload('{"techNews": {"stories": [],},}') == {"techNews": {"stories": []}}

    @pytest.mark.parametrize("text", ["", "   ", None, 42])
    def test_empty_or_non_string(self, text):
        """Missing text is a malformed payload."""
        with pytest.raises(MalformedPayloadError):
            parse_json_payload(text)

    def test_invalid_json(self):
        """Unrepairable text is a malformed payload."""
        with pytest.raises(MalformedPayloadError):
            parse_json_payload("Sure! Here is your newsletter:")

    def test_top_level_array_rejected(self):
        """Only a JSON object is accepted at the top level."""
        with pytest.raises(MalformedPayloadError):
            parse_json_payload("[1, 2, 3]")
