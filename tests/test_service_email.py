"""
Tests for header encoding and message-part parsing.
"""

import base64

import pytest

from services.email import (
    decode_header_value,
    decode_part_data,
    encode_header_value,
    extract_attachments,
    extract_bodies,
    find_attachment_filename,
    get_header,
    is_ascii,
    parse_message,
)


class TestIsAscii:
    """Test ASCII detection."""

    def test_ascii(self):
        assert is_ascii('Hello, world!') is True

    def test_non_ascii(self):
        assert is_ascii('Café') is False


class TestEncodeHeaderValue:
    """Test RFC 2047 encoding."""

    def test_ascii_unchanged(self):
        """Test ASCII values pass through."""
        assert encode_header_value('Weekly report') == 'Weekly report'

    def test_short_value(self):
        """Test a short non-ASCII value becomes one encoded word."""
        assert encode_header_value('Café') == '=?UTF-8?B?Q2Fmw6k=?='

    def test_output_is_ascii(self):
        assert is_ascii(encode_header_value('日本語のテスト')) is True

    def test_long_value_split_into_words(self):
        """Test long values are split into folded words within the length limit."""
        encoded = encode_header_value('Ünïcödé ' * 20)
        lines = encoded.split('\r\n ')

        assert len(lines) > 1
        assert all(line.startswith('=?UTF-8?B?') and line.endswith('?=') for line in lines)
        assert all(len(line) <= 75 for line in lines)

    def test_multibyte_characters_not_split(self):
        """Test each word decodes on its own (no character cut in half)."""
        encoded = encode_header_value('😀' * 30)
        for word in encoded.split('\r\n '):
            assert set(decode_header_value(word)) == {'😀'}


class TestRoundTrip:
    """Test encode then decode returns the original text."""

    @pytest.mark.parametrize("value", [
        'Plain ASCII subject',
        'Résumé für Zoë',
        '日本語のテスト – Ελληνικά – русский',
        '😀 emoji ' * 15,
    ])
    def test_round_trip(self, value):
        assert decode_header_value(encode_header_value(value)) == value


def _b64(text):
    return base64.urlsafe_b64encode(text.encode('utf-8')).decode('ascii').rstrip('=')


PAYLOAD = {
    'mimeType': 'multipart/mixed',
    'headers': [
        {'name': 'subject', 'value': 'Grüße'},
        {'name': 'From', 'value': 'alice@example.com'},
        {'name': 'Cc', 'value': 'carol@example.com'},
    ],
    'parts': [
        {
            'mimeType': 'multipart/alternative',
            'parts': [
                {'mimeType': 'text/plain', 'body': {'data': _b64('Hallo Bob')}},
                {'mimeType': 'text/html', 'body': {'data': _b64('<p>Hallo Bob</p>')}},
            ],
        },
        {
            'mimeType': 'image/png',
            'filename': 'chart.png',
            'body': {'attachmentId': 'att-1', 'size': 4096},
        },
        {'mimeType': 'application/octet-stream', 'body': {'attachmentId': 'att-2'}},
    ],
}


class TestGetHeader:
    """Test payload header lookup."""

    def test_case_insensitive(self):
        assert get_header(PAYLOAD['headers'], 'Subject') == 'Grüße'

    def test_missing(self):
        assert get_header(PAYLOAD['headers'], 'Date') == ''
        assert get_header(None, 'Date') == ''


class TestMessageParts:
    """Test body and attachment extraction from Gmail payloads."""

    def test_extract_bodies_nested(self):
        assert extract_bodies(PAYLOAD) == {'text': 'Hallo Bob', 'html': '<p>Hallo Bob</p>'}

    def test_decode_part_data_utf8(self):
        assert decode_part_data(_b64('Grüße')) == 'Grüße'

    def test_extract_attachments(self):
        """Test unnamed attachments get a generated name."""
        attachments = extract_attachments(PAYLOAD)

        assert [(a.id, a.filename, a.size) for a in attachments] == [
            ('att-1', 'chart.png', 4096),
            ('att-2', 'attachment-att-2', 0),
        ]
        assert attachments[0].mime_type == 'image/png'

    def test_find_attachment_filename(self):
        assert find_attachment_filename(PAYLOAD, 'att-1') == 'chart.png'
        assert find_attachment_filename(PAYLOAD, 'att-9') is None

    def test_parse_message(self):
        content = parse_message({'id': 'm1', 'threadId': 't-1', 'payload': PAYLOAD})

        assert content.subject == 'Grüße'
        assert content.sender == 'alice@example.com'
        assert content.cc == 'carol@example.com'
        assert content.bcc is None
        assert content.text == 'Hallo Bob'
        assert content.thread_id == 't-1'
        assert len(content.attachments) == 2
        assert content.html_only is False

    def test_html_only_message(self):
        message = {'payload': {'mimeType': 'text/html', 'body': {'data': _b64('<b>Hi</b>')}}}
        content = parse_message(message)

        assert content.html_only is True
        assert content.display_body == '<b>Hi</b>'
