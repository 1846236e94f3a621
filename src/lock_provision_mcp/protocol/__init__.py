"""Protocol layer: framing, CRC, command builders, and response parsing."""

from .framing import ResponseBuffer, build_frame, parse_header
from .commands import KeySlot, build_forward_crt, build_forward_key
from .parser import LockInfo, parse_csr, parse_lock_info
