"""p2pqr: file transfer over an optical channel.

Two devices face each other. The sender shows one QR code at a time and the
receiver shows an acknowledgment code back. Neither side can tell whether a
frame was seen, so every transition is gated on message indexes:
- lost frames only delay progress
- duplicate frames never change state
- the sender advances only when the receiver says so
"""

__all__ = []
