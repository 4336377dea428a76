from inventory_tracker.services.csv_parser import parse_csv_line, quote_csv_field, split_csv_lines


def test_plain_fields():
    assert parse_csv_line("a,b,c") == ["a", "b", "c"]


def test_quoted_comma_is_literal():
    assert parse_csv_line('"Hammer, claw",12.5') == ["Hammer, claw", "12.5"]


def test_escaped_quote_inside_quotes():
    assert parse_csv_line('"a""b"') == ['a"b']


def test_unquoted_quote_only_toggles_state():
    assert parse_csv_line('ab"c,d"e,f') == ["abc,de", "f"]


def test_trailing_delimiter_gives_empty_field():
    assert parse_csv_line("Widget,5.00,") == ["Widget", "5.00", ""]


def test_empty_line_is_one_empty_field():
    assert parse_csv_line("") == [""]


def test_quote_field_doubles_quotes():
    assert quote_csv_field('12" ruler') == '"12"" ruler"'
    assert quote_csv_field(None) == '""'


def test_quoted_value_parses_back():
    value = 'Box "large", brown'
    assert parse_csv_line(quote_csv_field(value) + ",1") == [value, "1"]


def test_split_lines_drops_blanks_and_handles_crlf():
    text = "\n name,price\r\nA,1\r\n\r\n  \nB,2\n"
    assert split_csv_lines(text) == ["name,price", "A,1", "B,2"]
