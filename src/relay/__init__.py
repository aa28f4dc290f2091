"""Call relay core.

Bridges the Twilio Media Streams websocket (telephony leg) and the OpenAI
Realtime websocket (AI leg) for the single call this process serves. Nothing
in this package touches FastAPI routing or the database directly; those are
injected through the protocols in ``relay.collaborators``.
"""
