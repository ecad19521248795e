"""
Pytest configuration and fixtures for all tests.
"""

import os
import sys
import pytest

# Add src to Python path before any imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

# Set up test environment variables before importing any modules
os.environ.setdefault('ENVIRONMENT', 'test')
os.environ.setdefault('LOG_LEVEL', 'INFO')
os.environ.setdefault('GMAIL_CREDENTIALS_PATH', '')


@pytest.fixture
def make_spec():
    """Factory for MessageSpec with sensible defaults."""
    from domain.models import MessageSpec

    def _make(**overrides):
        params = {
            'to': ['recipient@example.com'],
            'subject': 'Test Subject',
            'body': 'Hello world',
        }
        params.update(overrides)
        return MessageSpec(**params)

    return _make


@pytest.fixture
def attachment_file(tmp_path):
    """A small text file on disk to attach."""
    path = tmp_path / 'report.txt'
    path.write_bytes(b'quarterly numbers\n')
    return str(path)
