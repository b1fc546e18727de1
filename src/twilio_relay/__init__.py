"""
Twilio Relay.
Acknowledges Twilio SMS/MMS webhooks immediately and forwards a normalized
payload to the main application in the background.
"""

__version__ = "1.0.0"
