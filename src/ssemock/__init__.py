"""
SSE Mock

Mock Server-Sent Events backend: clients open a stream for any endpoint
identity and receive a recorded, time-scheduled sequence of events.
"""

__version__ = '1.0.0'
