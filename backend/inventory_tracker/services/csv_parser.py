"""Line-level CSV tokenizing and quoting.

Quoting rule shared by the importers and exporters: a field may be wrapped
in double quotes, commas inside quotes are literal, and ``""`` inside a
quoted field stands for one literal quote. A quote anywhere else only
toggles the in-quotes state.
"""

import re

_LINE_SPLIT = re.compile(r"\r?\n")


def parse_csv_line(line: str) -> list[str]:
    """Split one CSV line into its fields."""
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    length = len(line)

    while i < length:
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < length and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1

    # A trailing delimiter leaves an empty last field
    fields.append("".join(current))
    return fields


def split_csv_lines(text: str) -> list[str]:
    """Split a CSV document into its non-blank lines."""
    return [line for line in _LINE_SPLIT.split(text.strip()) if line.strip()]


def quote_csv_field(value: object) -> str:
    """Wrap a value in quotes, doubling any quote inside it."""
    text = "" if value is None else str(value)
    return '"' + text.replace('"', '""') + '"'
