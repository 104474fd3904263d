"""Exceptions raised by the SSE mock engine and store."""


class SSEMockError(Exception):
    """Base class for SSE mock errors."""


class MockDefinitionError(SSEMockError):
    """A document cannot be turned into a mock definition."""


class MockNotFoundError(SSEMockError):
    """No stored mock has the requested id."""
