"""USB HID connection to the lock.

Supports both ``hidapi`` (preferred) and ``pyusb`` backends.
The lock enumerates as a single HID interface with one interrupt IN and
one interrupt OUT endpoint; reports are 64 bytes in both directions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import TransportError
from ..protocol.framing import HID_REPORT_SIZE

logger = logging.getLogger(__name__)

VENDOR_ID = 0x2FE3
PRODUCT_ID = 0x0100
HID_INTERFACE_CLASS = 0x03
REPORT_ID = 0x00
READ_TIMEOUT_MS = 100


@dataclass
class DeviceInfo:
    """Basic device identification from USB descriptors."""

    vendor_id: int = VENDOR_ID
    product_id: int = PRODUCT_ID
    manufacturer: str = ""
    product: str = ""
    serial_number: str = ""

    def to_dict(self) -> dict:
        return {
            "vendor_id": f"0x{self.vendor_id:04X}",
            "product_id": f"0x{self.product_id:04X}",
            "manufacturer": self.manufacturer,
            "product": self.product,
            "serial_number": self.serial_number,
        }


def device_present(vendor_id: int = VENDOR_ID, product_id: int = PRODUCT_ID) -> bool:
    """Return True if a HID device with this identity is enumerated."""
    import hid

    return bool(hid.enumerate(vendor_id, product_id))


class HIDConnection:
    """Manages the USB HID connection to a lock.

    Usage::

        conn = HIDConnection()
        conn.open()
        conn.write(report)
        chunk = conn.read()
        conn.close()
    """

    def __init__(
        self,
        vendor_id: int = VENDOR_ID,
        product_id: int = PRODUCT_ID,
    ) -> None:
        self._vendor_id = vendor_id
        self._product_id = product_id
        self._device = None
        self._backend: str = ""
        self._connected = False
        self._interface = None
        self._ep_in = None
        self._ep_out = None
        self._device_info = DeviceInfo(vendor_id=vendor_id, product_id=product_id)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def backend(self) -> str:
        return self._backend

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    def open(self) -> DeviceInfo:
        """Open a connection to the lock, trying hidapi first, then pyusb.

        Returns:
            DeviceInfo with USB descriptor information.

        Raises:
            TransportError: If the device cannot be found or opened.
        """
        try:
            return self._open_hidapi()
        except Exception as e:
            logger.debug("hidapi backend failed: %s, trying pyusb", e)

        try:
            return self._open_pyusb()
        except Exception as e:
            raise TransportError(
                f"Could not connect to lock "
                f"({self._vendor_id:#06x}:{self._product_id:#06x}). "
                f"Ensure the device is connected and you have permissions. "
                f"Last error: {e}"
            ) from e

    def _open_hidapi(self) -> DeviceInfo:
        """Open using the hidapi library."""
        import hid

        device = hid.device()
        device.open(self._vendor_id, self._product_id)
        device.set_nonblocking(False)

        self._device = device
        self._backend = "hidapi"
        self._connected = True
        self._device_info = DeviceInfo(
            vendor_id=self._vendor_id,
            product_id=self._product_id,
            manufacturer=device.get_manufacturer_string() or "",
            product=device.get_product_string() or "",
            serial_number=device.get_serial_number_string() or "",
        )

        logger.info(
            "Connected via hidapi: %s %s",
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    def _open_pyusb(self) -> DeviceInfo:
        """Open using pyusb + libusb, locating the HID interface's endpoints."""
        import usb.core
        import usb.util

        dev = usb.core.find(idVendor=self._vendor_id, idProduct=self._product_id)
        if dev is None:
            raise TransportError("Device not found via pyusb")

        cfg = dev.get_active_configuration()
        intf = usb.util.find_descriptor(cfg, bInterfaceClass=HID_INTERFACE_CLASS)
        if intf is None:
            raise TransportError("Device exposes no HID interface")
        number = intf.bInterfaceNumber

        # Detach kernel driver if needed
        if dev.is_kernel_driver_active(number):
            dev.detach_kernel_driver(number)

        usb.util.claim_interface(dev, number)

        self._ep_in = usb.util.find_descriptor(
            intf,
            custom_match=lambda ep: usb.util.endpoint_direction(ep.bEndpointAddress)
            == usb.util.ENDPOINT_IN,
        )
        self._ep_out = usb.util.find_descriptor(
            intf,
            custom_match=lambda ep: usb.util.endpoint_direction(ep.bEndpointAddress)
            == usb.util.ENDPOINT_OUT,
        )
        if self._ep_in is None or self._ep_out is None:
            usb.util.release_interface(dev, number)
            raise TransportError("HID interface is missing an IN or OUT endpoint")

        self._device = dev
        self._interface = number
        self._backend = "pyusb"
        self._connected = True
        self._device_info = DeviceInfo(
            vendor_id=self._vendor_id,
            product_id=self._product_id,
            manufacturer=usb.util.get_string(dev, dev.iManufacturer) or "",
            product=usb.util.get_string(dev, dev.iProduct) or "",
            serial_number=usb.util.get_string(dev, dev.iSerialNumber) or "",
        )

        logger.info(
            "Connected via pyusb: %s %s",
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    def close(self) -> None:
        """Close the USB connection."""
        if not self._connected:
            return

        try:
            if self._backend == "hidapi":
                self._device.close()
            elif self._backend == "pyusb":
                import usb.util
                usb.util.release_interface(self._device, self._interface)
                usb.util.dispose_resources(self._device)
        except Exception as e:
            logger.warning("Error closing device: %s", e)
        finally:
            self._device = None
            self._interface = None
            self._ep_in = None
            self._ep_out = None
            self._connected = False
            logger.info("Disconnected")

    def write(self, report: bytes) -> int:
        """Write one 64-byte report to the device.

        On the hidapi backend the report is prefixed with report ID 0.

        Args:
            report: A 64-byte segment of a frame.

        Returns:
            Number of bytes written.

        Raises:
            TransportError: If not connected or the write fails.
        """
        if not self._connected:
            raise TransportError("Not connected to device")

        if len(report) != HID_REPORT_SIZE:
            raise ValueError(
                f"HID report must be {HID_REPORT_SIZE} bytes, got {len(report)}"
            )

        try:
            if self._backend == "hidapi":
                written = self._device.write(bytes([REPORT_ID]) + bytes(report))
            elif self._backend == "pyusb":
                written = self._ep_out.write(bytes(report), timeout=READ_TIMEOUT_MS)
            else:
                raise RuntimeError(f"Unknown backend: {self._backend}")
        except (OSError, ValueError) as e:
            # usb.core.USBError derives from OSError
            raise TransportError(f"Write failed: {e}") from e

        if written is not None and written < 0:
            raise TransportError("Write failed: device returned an error")
        return written

    def read(self, timeout_ms: int = READ_TIMEOUT_MS) -> bytes | None:
        """Read one inbound chunk from the device.

        Args:
            timeout_ms: Read timeout in milliseconds.

        Returns:
            The chunk's bytes, or None if the read timed out.

        Raises:
            TransportError: If not connected or the read fails.
        """
        if not self._connected:
            raise TransportError("Not connected to device")

        if self._backend == "hidapi":
            try:
                data = self._device.read(HID_REPORT_SIZE, timeout_ms)
            except (OSError, ValueError) as e:
                raise TransportError(f"Read failed: {e}") from e
            if data:
                return bytes(data)
            return None

        if self._backend == "pyusb":
            import usb.core

            try:
                data = self._ep_in.read(HID_REPORT_SIZE, timeout=timeout_ms)
            except usb.core.USBTimeoutError:
                return None
            except usb.core.USBError as e:
                raise TransportError(f"Read failed: {e}") from e
            return bytes(data)

        raise RuntimeError(f"Unknown backend: {self._backend}")

