"""
Tests for the message document builder.
"""

import base64
import pytest
from email import policy
from email.parser import Parser

from domain.errors import BuildError, ValidationError
from domain.message_builder import (
    BOUNDARY_PREFIX,
    MessageBuilder,
    build_html,
    build_multipart,
    build_plain,
    build_with_attachments,
    new_boundary,
    select_build_mode,
)
from domain.models import BuildMode, ContentMode
from services.email import decode_header_value


def _headers_and_body(document):
    """Split a document at the first blank line."""
    head, _, body = document.partition('\r\n\r\n')
    return head.split('\r\n'), body


class TestSelectBuildMode:
    """Test build mode selection."""

    def test_attachments_win(self, make_spec, attachment_file):
        """Test attachments select ATTACHMENT regardless of other fields."""
        spec = make_spec(
            attachments=[attachment_file],
            html_body='<p>Hi</p>',
            content_mode=ContentMode.HTML
        )
        assert select_build_mode(spec) is BuildMode.ATTACHMENT

    def test_html_body_with_multipart_mode(self, make_spec):
        """Test html body plus multipart content mode selects MULTIPART."""
        spec = make_spec(html_body='<p>Hi</p>', content_mode=ContentMode.MULTIPART)
        assert select_build_mode(spec) is BuildMode.MULTIPART

    def test_html_body_with_html_mode(self, make_spec):
        """Test html body plus text/html content mode also selects MULTIPART."""
        spec = make_spec(html_body='<p>Hi</p>', content_mode=ContentMode.HTML)
        assert select_build_mode(spec) is BuildMode.MULTIPART

    def test_html_body_ignored_in_plain_mode(self, make_spec):
        """Test html body with text/plain content mode selects PLAIN."""
        spec = make_spec(html_body='<p>Hi</p>', content_mode=ContentMode.PLAIN)
        assert select_build_mode(spec) is BuildMode.PLAIN

    def test_html_mode_without_html_body(self, make_spec):
        """Test text/html without html body selects HTML."""
        spec = make_spec(content_mode=ContentMode.HTML)
        assert select_build_mode(spec) is BuildMode.HTML

    def test_defaults_to_plain(self, make_spec):
        """Test default spec selects PLAIN."""
        assert select_build_mode(make_spec()) is BuildMode.PLAIN

    def test_accepts_mime_type_string(self, make_spec):
        """Test content mode given as MIME type string."""
        spec = make_spec(html_body='<p>Hi</p>', content_mode='multipart/alternative')
        assert select_build_mode(spec) is BuildMode.MULTIPART


class TestValidation:
    """Test preconditions shared by all modes."""

    def test_no_recipients(self, make_spec):
        """Test empty recipient list fails."""
        with pytest.raises(ValidationError, match="recipient"):
            MessageBuilder().build(make_spec(to=[]))

    @pytest.mark.parametrize("field", ['to', 'cc', 'bcc'])
    def test_invalid_address(self, make_spec, field):
        """Test malformed address in any recipient field fails and names it."""
        overrides = {field: ['good@example.com', 'not-an-address']}
        with pytest.raises(ValidationError, match="not-an-address"):
            MessageBuilder().build(make_spec(**overrides))

    @pytest.mark.parametrize("field", ['to', 'cc', 'bcc'])
    def test_non_ascii_address_rejected(self, make_spec, field):
        """Test addresses that would need an encoded word are refused."""
        overrides = {field: ['jürgen@example.com']}
        with pytest.raises(ValidationError, match='jürgen'):
            MessageBuilder().build(make_spec(**overrides))

    def test_address_headers_written_verbatim(self, make_spec):
        """Test To/Cc lines carry the plain addresses with a non-ASCII subject."""
        spec = make_spec(
            to=['a@example.com', 'b@example.com'],
            cc=['c@example.com'],
            subject='Grüße'
        )
        headers, _ = _headers_and_body(MessageBuilder().build(spec))

        assert 'To: a@example.com, b@example.com' in headers
        assert 'Cc: c@example.com' in headers

    def test_subject_with_newline(self, make_spec):
        """Test header injection through the subject is rejected."""
        with pytest.raises(ValidationError):
            MessageBuilder().build(make_spec(subject="Hi\r\nBcc: evil@example.com"))

    def test_invalid_address_checked_before_attachments(self, make_spec):
        """Test validation runs before any attachment is read."""
        spec = make_spec(to=['bad'], attachments=['/nonexistent/file.pdf'])
        with pytest.raises(ValidationError):
            MessageBuilder().build(spec)

    def test_unknown_mime_type(self, make_spec):
        """Test unsupported content mode string is rejected."""
        with pytest.raises(ValidationError):
            MessageBuilder().build(make_spec(content_mode='application/json'))


class TestPlainAndHtml:
    """Test PLAIN and HTML documents."""

    def test_plain_document_layout(self, make_spec):
        """Test exact header order and body for a plain message."""
        spec = make_spec(
            cc=['cc@example.com'],
            bcc=['bcc@example.com'],
            in_reply_to='<abc@mail.example.com>'
        )
        document = MessageBuilder().build(spec)

        assert document == '\r\n'.join([
            'From: me',
            'To: recipient@example.com',
            'Cc: cc@example.com',
            'Bcc: bcc@example.com',
            'Subject: Test Subject',
            'In-Reply-To: <abc@mail.example.com>',
            'References: <abc@mail.example.com>',
            'MIME-Version: 1.0',
            'Content-Type: text/plain; charset=UTF-8',
            'Content-Transfer-Encoding: 7bit',
            '',
            'Hello world',
        ])

    def test_plain_omits_optional_headers(self, make_spec):
        """Test optional headers are left out when not given."""
        headers, body = _headers_and_body(MessageBuilder().build(make_spec()))

        names = [h.split(':', 1)[0] for h in headers]
        assert 'Cc' not in names
        assert 'Bcc' not in names
        assert 'In-Reply-To' not in names
        assert body == 'Hello world'

    def test_multiple_recipients_joined(self, make_spec):
        """Test recipients are comma separated."""
        spec = make_spec(to=['a@example.com', 'b@example.com'])
        headers, _ = _headers_and_body(MessageBuilder().build(spec))
        assert 'To: a@example.com, b@example.com' in headers

    def test_html_falls_back_to_plain_body(self, make_spec):
        """Test HTML mode without html_body uses the plain body."""
        spec = make_spec(content_mode=ContentMode.HTML)
        headers, body = _headers_and_body(MessageBuilder().build(spec))

        assert 'Content-Type: text/html; charset=UTF-8' in headers
        assert body == 'Hello world'

    def test_build_html_prefers_html_body(self, make_spec):
        """Test HTML strategy uses html_body when present."""
        _, body = _headers_and_body(build_html(make_spec(html_body='<p>Hi</p>')))
        assert body == '<p>Hi</p>'

    def test_body_inserted_verbatim(self, make_spec):
        """Test body text is not re-encoded."""
        body_text = 'Line one\r\nLine two – ünïcode'
        _, body = _headers_and_body(MessageBuilder().build(make_spec(body=body_text)))
        assert body == body_text


class TestMultipart:
    """Test multipart/alternative documents."""

    def test_two_parts_plain_first(self, make_spec):
        """Test output has plain then html parts bounded by the same token."""
        spec = make_spec(html_body='<p>Hello world</p>', content_mode=ContentMode.MULTIPART)
        document = MessageBuilder(token_factory=lambda: 'abc123').build(spec)
        boundary = BOUNDARY_PREFIX + 'abc123'

        headers, body = _headers_and_body(document)
        assert f'Content-Type: multipart/alternative; boundary="{boundary}"' in headers
        assert body.count(f'--{boundary}\r\n') == 2
        assert body.endswith(f'--{boundary}--')
        assert body.index('text/plain') < body.index('text/html')

    def test_parses_as_alternative(self, make_spec):
        """Test the stdlib parser sees exactly two parts with original bodies."""
        spec = make_spec(html_body='<p>Hello world</p>', content_mode=ContentMode.MULTIPART)
        msg = Parser(policy=policy.default).parsestr(MessageBuilder().build(spec))

        assert msg.get_content_type() == 'multipart/alternative'
        parts = list(msg.iter_parts())
        assert [p.get_content_type() for p in parts] == ['text/plain', 'text/html']
        assert parts[0].get_content().rstrip('\r\n') == 'Hello world'
        assert parts[1].get_content().rstrip('\r\n') == '<p>Hello world</p>'

    def test_boundary_not_in_bodies(self, make_spec):
        """Test a colliding token is regenerated."""
        tokens = iter(['collide', 'fresh'])
        spec = make_spec(
            body=f'see {BOUNDARY_PREFIX}collide here',
            html_body='<p>x</p>',
            content_mode=ContentMode.MULTIPART
        )
        document = MessageBuilder(token_factory=lambda: next(tokens)).build(spec)

        assert f'boundary="{BOUNDARY_PREFIX}fresh"' in document

    def test_build_multipart_direct(self, make_spec):
        """Test strategy function output with a fixed boundary."""
        spec = make_spec(html_body='<b>hi</b>')
        document = build_multipart(spec, 'B')
        _, body = _headers_and_body(document)

        assert body == '\r\n'.join([
            '--B',
            'Content-Type: text/plain; charset=UTF-8',
            'Content-Transfer-Encoding: 7bit',
            '',
            'Hello world',
            '--B',
            'Content-Type: text/html; charset=UTF-8',
            'Content-Transfer-Encoding: 7bit',
            '',
            '<b>hi</b>',
            '--B--',
        ])


class TestNewBoundary:
    """Test boundary generation."""

    def test_default_tokens_unique(self):
        """Test two default boundaries differ."""
        assert new_boundary() != new_boundary()

    def test_has_prefix(self):
        assert new_boundary('body').startswith(BOUNDARY_PREFIX)


class TestHeaderEncoding:
    """Test non-ASCII header values."""

    def test_non_ascii_subject_round_trips(self, make_spec):
        """Test encoded subject decodes to the original text."""
        subject = 'Résumé für Zoë – 日本語のテスト'
        document = MessageBuilder().build(make_spec(subject=subject))

        msg = Parser(policy=policy.compat32).parsestr(document)
        assert decode_header_value(msg['Subject']) == subject

    def test_document_is_ascii_in_headers(self, make_spec):
        """Test header block contains only ASCII characters."""
        document = MessageBuilder().build(make_spec(subject='Café ☕'))
        headers, _ = _headers_and_body(document)
        assert all(line.isascii() for line in headers)

    def test_ascii_subject_unchanged(self, make_spec):
        headers, _ = _headers_and_body(MessageBuilder().build(make_spec(subject='Plain')))
        assert 'Subject: Plain' in headers


class TestAttachments:
    """Test ATTACHMENT documents."""

    def test_attachment_part(self, make_spec, attachment_file):
        """Test file is embedded as a base64 attachment part."""
        spec = make_spec(attachments=[attachment_file], cc=['cc@example.com'])
        document = MessageBuilder().build(spec)
        msg = Parser(policy=policy.default).parsestr(document)

        assert msg.get_content_type() == 'multipart/mixed'
        assert msg['Cc'] == 'cc@example.com'
        attachments = list(msg.iter_attachments())
        assert len(attachments) == 1
        part = attachments[0]
        assert part.get_filename() == 'report.txt'
        assert part['Content-Transfer-Encoding'] == 'base64'
        assert part.get_content_disposition() == 'attachment'
        assert part.get_payload(decode=True) == b'quarterly numbers\n'

    def test_crlf_line_endings(self, make_spec, attachment_file):
        """Test every line ends with CRLF."""
        document = MessageBuilder().build(make_spec(attachments=[attachment_file]))
        assert '\n' not in document.replace('\r\n', '')

    def test_text_and_html_bodies_included(self, make_spec, attachment_file):
        """Test plain and html bodies are both present alongside the file."""
        spec = make_spec(attachments=[attachment_file], html_body='<p>Hello</p>')
        msg = Parser(policy=policy.default).parsestr(MessageBuilder().build(spec))

        plain = msg.get_body(preferencelist=('plain',))
        html = msg.get_body(preferencelist=('html',))
        assert plain.get_content().strip() == 'Hello world'
        assert html.get_content().strip() == '<p>Hello</p>'

    def test_reply_headers(self, make_spec, attachment_file):
        """Test In-Reply-To and References are set."""
        spec = make_spec(attachments=[attachment_file], in_reply_to='<orig@example.com>')
        msg = Parser(policy=policy.default).parsestr(MessageBuilder().build(spec))

        assert msg['In-Reply-To'] == '<orig@example.com>'
        assert msg['References'] == '<orig@example.com>'

    def test_missing_file_fails(self, make_spec, attachment_file, tmp_path):
        """Test a missing file aborts the whole build."""
        missing = str(tmp_path / 'missing.pdf')
        spec = make_spec(attachments=[attachment_file, missing])

        with pytest.raises(BuildError, match='missing.pdf'):
            MessageBuilder().build(spec)

    def test_oversized_file_fails(self, make_spec, attachment_file):
        """Test size limit is enforced."""
        with pytest.raises(BuildError, match='too large'):
            MessageBuilder(max_attachment_size=4).build(make_spec(attachments=[attachment_file]))

    def test_zero_attachments_rejected(self, make_spec):
        """Test strategy requires at least one attachment."""
        with pytest.raises(ValidationError):
            build_with_attachments(make_spec(), [])

    def test_non_ascii_subject(self, make_spec, attachment_file):
        """Test subject is decodable in attachment mode."""
        spec = make_spec(attachments=[attachment_file], subject='Überweisung')
        msg = Parser(policy=policy.default).parsestr(MessageBuilder().build(spec))
        assert msg['Subject'] == 'Überweisung'

    def test_non_ascii_subject_uses_base64_words(self, make_spec, attachment_file):
        """Test attachment mode encodes the subject like the other modes."""
        spec = make_spec(attachments=[attachment_file], subject='Café')
        document = MessageBuilder().build(spec)
        headers, _ = _headers_and_body(document)

        assert 'Subject: =?UTF-8?B?Q2Fmw6k=?=' in headers
        assert build_plain(spec).split('\r\n')[2] == 'Subject: =?UTF-8?B?Q2Fmw6k=?='

    def test_header_order_matches_hand_built_modes(self, make_spec, attachment_file):
        """Test address headers come first, then MIME-Version and the mixed Content-Type."""
        spec = make_spec(attachments=[attachment_file], cc=['cc@example.com'])
        headers, _ = _headers_and_body(MessageBuilder().build(spec))

        assert headers[:5] == [
            'From: me',
            'To: recipient@example.com',
            'Cc: cc@example.com',
            'Subject: Test Subject',
            'MIME-Version: 1.0',
        ]
        assert headers[5].startswith('Content-Type: multipart/mixed')
        assert sum(1 for h in headers if h.startswith('Subject:')) == 1

    def test_binary_content_round_trips(self, make_spec, tmp_path):
        """Test binary file bytes survive base64 encoding."""
        data = bytes(range(256))
        path = tmp_path / 'blob.bin'
        path.write_bytes(data)

        msg = Parser(policy=policy.default).parsestr(
            MessageBuilder().build(make_spec(attachments=[str(path)]))
        )
        part = next(msg.iter_attachments())
        assert part.get_content_type() == 'application/octet-stream'
        assert base64.b64decode(part.get_payload()) == data
