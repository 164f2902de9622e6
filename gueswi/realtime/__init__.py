"""
Realtime push over WebSocket

Services publish cache-invalidation events per tenant through
``broadcast_to_tenant``; browsers (or ``RealtimeClient``) subscribe on ``/ws``.
"""
