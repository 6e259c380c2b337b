from __future__ import annotations

PROTOCOL_TAG = "p2pqr"

SEND_INIT = "send_init"
SEND_CHUNK = "send_chunk"
RECEIVED_CHUNK = "received_chunk"
RECEIVE_DONE = "receive_done"

AWAITING_INIT = -1  # expected_next_index sentinel before a send_init is accepted

DEFAULT_CHUNK_SIZE = 128  # base64 characters per send_chunk
DEFAULT_CODE_CAPACITY = 512  # characters a code reliably carries at arm's length

DEFAULT_RENDER_FPS = 10.0
DEFAULT_SCAN_FPS = 15.0
DEFAULT_OUTPUT_DIR = "p2pqr"
DEFAULT_MIME_TYPE = "application/octet-stream"
