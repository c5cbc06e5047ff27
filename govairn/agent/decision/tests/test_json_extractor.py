from govairn.agent.decision.json_extractor import extract_json_from_text


class TestExtractJsonFromText:

    def test_plain_object(self):
        assert extract_json_from_text('{"decision": "for"}') == {"decision": "for"}

    def test_json_code_block(self):
        text = 'Sure!\n```json\n{"decision": "against", "confidence": 70}\n```'
        assert extract_json_from_text(text) == {"decision": "against", "confidence": 70}

    def test_untagged_code_block(self):
        assert extract_json_from_text('```\n{"a": 1}\n```') == {"a": 1}

    def test_object_embedded_in_prose(self):
        text = 'My answer is {"decision": "abstain", "factors": [{"name": "x"}]} as requested.'
        assert extract_json_from_text(text) == {"decision": "abstain", "factors": [{"name": "x"}]}

    def test_skips_unparseable_braces(self):
        text = 'Use {placeholders} carefully. {"decision": "for"}'
        assert extract_json_from_text(text) == {"decision": "for"}

    def test_no_json(self):
        assert extract_json_from_text("I recommend voting for this proposal.") is None

    def test_top_level_list_is_ignored(self):
        assert extract_json_from_text("[1, 2, 3]") is None

    def test_empty_and_non_string(self):
        assert extract_json_from_text("") is None
        assert extract_json_from_text(None) is None
