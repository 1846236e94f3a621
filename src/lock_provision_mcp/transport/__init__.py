"""USB HID transport: device handle, presence polling and chunked exchange."""
