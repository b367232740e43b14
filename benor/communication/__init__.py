"""Communication layer for consensus nodes"""
from .message_passing import (
    Phase, Value, ProtocolMessage, Transport, HttpTransport, LocalNetwork, LocalTransport, broadcast
)
from .readiness import ReadinessTracker

__all__ = ['Phase', 'Value', 'ProtocolMessage', 'Transport', 'HttpTransport',
           'LocalNetwork', 'LocalTransport', 'broadcast', 'ReadinessTracker']
