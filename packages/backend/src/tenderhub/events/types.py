"""Event type constants.

Learn: the ``type`` field is the discriminator on the wire, so clients
switch on these exact strings.
"""

# ─── Bid lifecycle ───────────────────────────────────────

NEW_BID = "new_bid"
AWARD = "award"

# ─── Connection lifecycle (sent by the server, not a domain event) ─

CONNECTED = "connected"
