"""
Twilio webhook handling package.
Immediate acknowledgment plus background forwarding to the main app.
"""

from .models import ForwardPayload, InboundMessage

__all__ = ["ForwardPayload", "InboundMessage"]
