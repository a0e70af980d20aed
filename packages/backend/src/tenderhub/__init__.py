"""TenderHub — tendering marketplace backend.

Clients post tenders, contractors bid on them, clients award a bid.
Bid submission is admission-controlled per contractor, and both sides
get live notifications over a WebSocket.
"""

__version__ = "0.1.0"
