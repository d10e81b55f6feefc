#!/usr/bin/env python3
"""
Test suite for TSPL command stream output
Uses inline snapshots to ensure the printer sees a stable command sequence
"""

import pytest
from inline_snapshot import snapshot

from barcode_symbology import EncodingError, Symbology, code128_values, encode
from label_layout import DEFAULT_MEDIA, LabelContent, MediaSpec, compute_layout
from tspl_commands import barcode_payload, build_command_stream, command_lines, quote


def build(code, article, media=DEFAULT_MEDIA, unit="dot", **kwargs):
    content = LabelContent(code, article)
    symbology, matrix = encode(code)
    plan = compute_layout(matrix, content, media, unit)
    return build_command_stream(plan, symbology, content, media, **kwargs)


def lines_of(data, encoding="utf-8"):
    text = data.decode(encoding)
    assert text.endswith("\r\n")
    return text[:-2].split("\r\n")


class TestReferenceLabel:
    """ABC123 / Bolt M6 on the default 55 x 40 mm media"""

    def test_full_stream(self):
        assert lines_of(build("ABC123", "Bolt M6")) == snapshot(
            [
                "SIZE 55 mm, 40 mm",
                "GAP 2 mm, 0 mm",
                "CLS",
                "DIRECTION 1",
                "CODEPAGE UTF-8",
                'BARCODE 18,16,"128M",228,0,0,4,4,"!104ABC123"',
                'TEXT 172,252,"3",0,1,1,"ABC123"',
                'TEXT 178,284,"2",0,1,1,"Bolt M6"',
                "PRINT 1,1",
            ]
        )

    def test_fixed_header(self):
        lines = lines_of(build("ABC123", "Bolt M6"))
        assert lines[:3] == ["SIZE 55 mm, 40 mm", "GAP 2 mm, 0 mm", "CLS"]

    def test_command_counts(self):
        lines = lines_of(build("ABC123", "Bolt M6"))

        assert sum(1 for line in lines if line.startswith("BARCODE ")) == 1
        assert sum(1 for line in lines if line.startswith("TEXT ")) == 2
        assert lines[-1].startswith("PRINT ")

    def test_every_line_is_crlf_terminated(self):
        data = build("ABC123", "Bolt M6")
        assert data.count(b"\r\n") == 9
        assert b"\n" not in data.replace(b"\r\n", b"")


class TestSymbologyTags:
    def test_ean13(self):
        lines = lines_of(build("4006381333931", "Nut M6"))
        assert lines[5] == 'BARCODE 30,16,"EAN13",228,0,0,4,4,"4006381333931"'

    def test_code128_numeric(self):
        lines = lines_of(build("123456", "Washer"))
        assert lines[5] == 'BARCODE 16,16,"128M",228,0,0,6,6,"!105123456"'

    @pytest.mark.parametrize(
        "code,start",
        [("12345", "!104"), ("AB123456", "!104"), ("123456", "!105"), ("ABC123", "!104")],
    )
    def test_code128_start_subset_is_pinned(self, code, start):
        """Printer starts in the same subset as the encoder and never switches"""
        lines = lines_of(build(code, "Washer"))

        assert '"128M"' in lines[5]
        assert lines[5].endswith(f',"{start}{code}"')
        assert start == f"!{code128_values(code)[0]:03d}"

    def test_ean13_payload_is_literal(self):
        assert barcode_payload(Symbology.EAN13, "4006381333932") == "4006381333932"

    def test_control_sequence_in_code128(self):
        with pytest.raises(EncodingError) as exc:
            build("AB!104", "Washer")
        assert exc.value.position == 2

    def test_lone_exclamation_mark(self):
        lines = lines_of(build("A!B", "Washer"))
        assert lines[5].endswith(',"!104A!B"')


class TestTextEncoding:
    """Test non-Latin article text"""

    def test_utf8_article(self):
        data = build("ABC123", "Болт М6")

        assert "Болт М6".encode("utf-8") in data
        assert lines_of(data)[-2] == 'TEXT 178,284,"2",0,1,1,"Болт М6"'

    def test_cp1251_article(self):
        data = build("ABC123", "Болт М6", encoding="cp1251")

        assert "Болт М6".encode("cp1251") in data
        assert "CODEPAGE 1251" in lines_of(data, "cp1251")

    def test_unrepresentable_character(self):
        with pytest.raises(EncodingError) as exc:
            build("ABC123", "Болт", encoding="cp1252")
        assert exc.value.character == "Б"

    def test_unknown_encoding(self):
        with pytest.raises(ValueError):
            build("ABC123", "Bolt", encoding="latin-9")

    def test_command_tokens_are_ascii(self):
        data = build("ABC123", "Болт М6")
        for line in lines_of(data):
            keyword = line.split(" ", 1)[0]
            assert keyword.isascii() and keyword.isupper()


class TestPayloads:
    def test_quote_escape(self):
        assert quote('12" pipe') == '"12\\["] pipe"'

    def test_quoted_article(self):
        lines = lines_of(build("ABC123", 'Pipe 1/2"'))
        assert lines[-2].endswith('"Pipe 1/2\\["]"')

    def test_copies(self):
        lines = lines_of(build("ABC123", "Bolt M6", copies=3))
        assert lines[-1] == "PRINT 1,3"

    def test_fractional_media(self):
        media = MediaSpec(57.5, 32.5, 2.5, 8)
        lines = lines_of(build("ABC123", "Bolt", media=media))
        assert lines[:2] == ["SIZE 57.5 mm, 32.5 mm", "GAP 2.5 mm, 0 mm"]


class TestPointPlan:
    """A plan laid out in points is emitted in printer dots"""

    def test_point_plan_positions_are_dots(self):
        content = LabelContent("ABC123", "Bolt M6")
        symbology, matrix = encode(content.code)
        plan = compute_layout(matrix, content, DEFAULT_MEDIA, unit="point")
        lines = command_lines(plan, symbology, content, DEFAULT_MEDIA)

        barcode = lines[5].split(",")
        x, y = int(barcode[0].split()[1]), int(barcode[1])
        assert x == plan.to_dots(plan.barcode_origin.x)
        assert y == plan.to_dots(plan.barcode_origin.y) == 16


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
