"""
Ticket Issuance

Binary ticket container and the two-pass level 1 signing protocol.
"""

from ticketsign.core.tickets.container import (
    ByteRange,
    ContainerFormatError,
    DocumentEncoder,
    TicketContainerEncoder,
    TicketFields,
)
from ticketsign.core.tickets.issuer import (
    Draft,
    SignedTicket,
    TwoPassIssuer,
    verify_ticket,
)

__all__ = [
    "ByteRange",
    "ContainerFormatError",
    "DocumentEncoder",
    "TicketContainerEncoder",
    "TicketFields",
    "Draft",
    "SignedTicket",
    "TwoPassIssuer",
    "verify_ticket",
]
