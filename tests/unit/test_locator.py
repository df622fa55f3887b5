"""Tests for rule-block location."""

from rulesmith.core.locator import (
    extract_rule_name,
    find_rule_blocks,
    find_unterminated_headers,
    locate_rule_block,
)

TWO_RULES = """package rules;

import com.example.model.Quote;
rule "R1"
when
    $q : Quote(premium > 500)
then
end

rule "R2"
    salience 10
when
    $q : Quote()
then
    $q.setDiscount(5);
end
"""


class TestLocateRuleBlock:
    """Tests for locate_rule_block."""

    def test_round_trip_lines_three_to_seven(self):
        block = locate_rule_block(TWO_RULES, 5)
        assert block is not None
        assert block.name == "R1"
        assert block.start_line == 3
        assert block.end_line == 7

    def test_every_line_inside_rule_finds_it(self):
        for line in range(3, 8):
            block = locate_rule_block(TWO_RULES, line)
            assert block is not None, line
            assert (block.start_line, block.end_line) == (3, 7)

    def test_second_rule(self):
        block = locate_rule_block(TWO_RULES, 12)
        assert block is not None
        assert block.name == "R2"
        assert (block.start_line, block.end_line) == (9, 15)

    def test_outside_any_rule(self):
        assert locate_rule_block(TWO_RULES, 0) is None
        assert locate_rule_block(TWO_RULES, 2) is None
        assert locate_rule_block(TWO_RULES, 8) is None

    def test_cursor_out_of_range(self):
        assert locate_rule_block(TWO_RULES, -1) is None
        assert locate_rule_block(TWO_RULES, 500) is None

    def test_unterminated_rule(self):
        text = 'rule "Open"\nwhen\n    $q : Quote()\nthen\n'
        assert locate_rule_block(text, 2) is None

    def test_text_and_columns(self):
        text = '  rule "Indented"\n  when\n  then\n  end'
        block = locate_rule_block(text, 1)
        assert block is not None
        assert block.full_text == text
        assert block.start_column == 2
        assert block.end_column == len("  end")

    def test_crlf_line_endings(self):
        text = TWO_RULES.replace("\n", "\r\n")
        block = locate_rule_block(text, 4)
        assert block is not None
        assert block.end_column == 3
        assert "\r" not in block.full_text
        assert block.full_text == 'rule "R1"\nwhen\n    $q : Quote(premium > 500)\nthen\nend'

    def test_end_inside_braces_is_skipped(self):
        text = 'rule "Braces"\nwhen\nthen\n    modify($q) {\nend\n    }\nend'
        block = locate_rule_block(text, 2)
        assert block is not None
        assert block.end_line == 6

    def test_to_range(self):
        block = locate_rule_block(TWO_RULES, 4)
        rule_range = block.to_range()
        assert rule_range.start_line == 3
        assert rule_range.end_line == 7
        assert rule_range.start_column == 0
        assert rule_range.end_column == 3


class TestFindRuleBlocks:
    """Tests for whole-document scans."""

    def test_finds_all_blocks_in_order(self):
        assert [b.name for b in find_rule_blocks(TWO_RULES)] == ["R1", "R2"]

    def test_unterminated_headers(self):
        text = TWO_RULES + '\nrule "Dangling"\nwhen\n'
        assert find_unterminated_headers(text) == [(17, "Dangling")]
        assert find_unterminated_headers(TWO_RULES) == []

    def test_extract_rule_name(self):
        assert extract_rule_name('rule "Flag it"\nwhen\nthen\nend') == "Flag it"
        assert extract_rule_name("when then end") is None

    def test_crlf_unterminated_headers(self):
        text = (TWO_RULES + '\nrule "Dangling"\nwhen\n').replace("\n", "\r\n")
        assert [b.name for b in find_rule_blocks(text)] == ["R1", "R2"]
        assert find_unterminated_headers(text) == [(17, "Dangling")]
