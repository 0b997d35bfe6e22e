"""
Ticketing Engine

Core ticket system with:
- Contract-bound demands and software catalog
- Ticket state machine with SLA time tracking
- Changeset-driven activity timeline
"""

__version__ = "0.1.0"
