"""
Uxn Device Map
==============

Uxn talks to its peripherals through 16 device pages of 16 ports each, in
the zero page of the device address space. Programs name the ports with
``.Device/field`` references; this module turns those names into port
addresses.

Each device is declared by its base address and an ordered list of fields
with their sizes. A field's address is the base plus the sizes of the
fields before it:

    |10 @Console &vector $2 &read $1 &pad $5 &write $1 &error $1

    Console/vector = 0x10, Console/read = 0x12, Console/write = 0x18

The default table matches the Varvara computer. A DeviceMap is an
immutable value: methods that "modify" it return a new map, so one map can
be shared between any number of assemblers.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

logger = logging.getLogger(__name__)

# Devices live in the first page of the device address space
DEVICE_PAGE_SIZE = 0x100


@dataclass(frozen=True)
class DeviceField:
    """A named port of a device, ``size`` bytes wide."""
    name: str
    size: int


@dataclass(frozen=True)
class Device:
    """
    A device: a base address and its fields in declaration order.

    Raises:
        ValueError: If the base address or any field lies outside the
            device page, or a field has a non-positive size.
    """
    address: int
    name: str
    fields: tuple[DeviceField, ...] = ()
    _offsets: dict = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        # Accept any iterable of fields but store a tuple
        object.__setattr__(self, "fields", tuple(self.fields))
        if not 0 <= self.address < DEVICE_PAGE_SIZE:
            raise ValueError(
                f"device '{self.name}' base address {self.address:#x} is outside the device page"
            )

        offsets = {}
        offset = 0
        for dev_field in self.fields:
            if dev_field.size <= 0:
                raise ValueError(
                    f"field '{self.name}/{dev_field.name}' has invalid size {dev_field.size}"
                )
            if self.address + offset + dev_field.size > DEVICE_PAGE_SIZE:
                raise ValueError(
                    f"field '{self.name}/{dev_field.name}' at offset {offset:#x} "
                    f"runs past the device page"
                )
            # First declaration of a name wins (e.g. repeated &pad fields)
            offsets.setdefault(dev_field.name, offset)
            offset += dev_field.size
        object.__setattr__(self, "_offsets", offsets)

    @property
    def size(self) -> int:
        """Total bytes spanned by the fields."""
        return sum(f.size for f in self.fields)

    def field_offset(self, name: str) -> Optional[int]:
        return self._offsets.get(name)

    def field_address(self, name: str) -> Optional[int]:
        """Absolute address of a field, or None if the device has no such field."""
        offset = self._offsets.get(name)
        if offset is None:
            return None
        return self.address + offset

    def get_field(self, name: str) -> Optional[DeviceField]:
        for dev_field in self.fields:
            if dev_field.name == name:
                return dev_field
        return None

    def extend_fields(self, fields: Iterable[DeviceField]) -> "Device":
        """Return a copy of this device with extra fields appended."""
        return Device(self.address, self.name, self.fields + tuple(fields))


class DeviceMap:
    """
    An immutable collection of devices, looked up by name.

    Example:
        >>> devices = DeviceMap.default()
        >>> hex(devices.resolve("Console", "write"))
        '0x18'
    """

    def __init__(self, devices: Iterable[Device] = ()):
        self._devices = tuple(devices)
        self._by_name = {}
        for device in self._devices:
            if device.name in self._by_name:
                raise ValueError(f"device '{device.name}' declared twice")
            self._by_name[device.name] = device

    @classmethod
    def default(cls) -> "DeviceMap":
        """The Varvara device table."""
        return _DEFAULT_MAP

    def __iter__(self) -> Iterator[Device]:
        return iter(self._devices)

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DeviceMap):
            return NotImplemented
        return self._devices == other._devices

    def __hash__(self) -> int:
        return hash(self._devices)

    def __repr__(self) -> str:
        names = ", ".join(d.name for d in self._devices)
        return f"DeviceMap({names})"

    def get(self, name: str) -> Optional[Device]:
        return self._by_name.get(name)

    def resolve(self, device: str, field_name: str) -> Optional[int]:
        """Address of ``device/field_name``, or None if either is unknown."""
        dev = self._by_name.get(device)
        if dev is None:
            return None
        return dev.field_address(field_name)

    def resolve_path(self, path: str) -> Optional[int]:
        """Resolve a ``Device/field`` path."""
        device, sep, field_name = path.partition("/")
        if not sep or not field_name:
            return None
        return self.resolve(device, field_name)

    def name_for_address(self, address: int) -> Optional[str]:
        """
        The ``Device/field`` path at an address, if a field starts there.

        Used by the disassembler to annotate DEI/DEO operands.
        """
        for dev in self._devices:
            for field_name, offset in dev._offsets.items():
                if dev.address + offset == address:
                    return f"{dev.name}/{field_name}"
        return None

    def with_device(self, device: Device) -> "DeviceMap":
        """Return a map with ``device`` added, replacing one of the same name."""
        devices = [d for d in self._devices if d.name != device.name]
        devices.append(device)
        return DeviceMap(devices)

    def extend_fields(self, device: str, fields: Iterable[DeviceField]) -> "DeviceMap":
        """
        Return a map in which ``device`` has extra fields appended.

        Raises:
            KeyError: If the device is not in the map.
        """
        dev = self._by_name.get(device)
        if dev is None:
            raise KeyError(device)
        extended = dev.extend_fields(fields)
        return DeviceMap(extended if d.name == device else d for d in self._devices)

    def merge(self, other: "DeviceMap") -> "DeviceMap":
        """Return a map with every device of ``other`` added or replaced."""
        merged = self
        for device in other:
            merged = merged.with_device(device)
        return merged


# =============================================================================
# Device Declarations in TAL
# =============================================================================

def parse_device_line(line: str) -> Optional[Device]:
    """
    Parse one device declaration line.

    Format: ``|ADDR @Name &field $SIZE &field $SIZE ...``. Lines that are
    not device declarations return None; fields with a malformed size are
    skipped.
    """
    words = line.split()
    if len(words) < 2 or not words[0].startswith("|") or not words[1].startswith("@"):
        return None
    try:
        address = int(words[0][1:], 16)
    except ValueError:
        return None
    name = words[1][1:]
    if not name:
        return None

    fields = []
    rest = iter(words[2:])
    for word in rest:
        if not word.startswith("&"):
            continue
        size_word = next(rest, None)
        if size_word is None or not size_word.startswith("$"):
            continue
        try:
            size = int(size_word[1:], 16)
        except ValueError:
            continue
        fields.append(DeviceField(word[1:], size))

    return Device(address, name, tuple(fields))


def parse_device_maps(source: str) -> DeviceMap:
    """
    Collect every device declaration found in TAL source.

    Raises:
        ValueError: If a declaration is outside the device page or a
            device is declared twice.
    """
    devices = []
    for line in source.splitlines():
        device = parse_device_line(line)
        if device is not None:
            devices.append(device)
    logger.debug("parsed %d device declarations", len(devices))
    return DeviceMap(devices)


def _fields(*entries: tuple[str, int]) -> tuple[DeviceField, ...]:
    return tuple(DeviceField(name, size) for name, size in entries)


_AUDIO_FIELDS = _fields(
    ("vector", 2), ("position", 2), ("output", 1), ("pad", 3), ("adsr", 2),
    ("length", 2), ("addr", 2), ("volume", 1), ("pitch", 1),
)

_FILE_FIELDS = _fields(
    ("vector", 2), ("success", 2), ("stat", 2), ("delete", 1), ("append", 1),
    ("name", 2), ("length", 2), ("read", 2), ("write", 2),
)

DEFAULT_DEVICES = (
    Device(0x00, "System", _fields(
        ("vector", 2), ("wst", 1), ("rst", 1), ("eaddr", 2), ("ecode", 1),
        ("pad", 1), ("r", 2), ("g", 2), ("b", 2), ("debug", 1), ("halt", 1),
        ("state", 1),
    )),
    Device(0x10, "Console", _fields(
        ("vector", 2), ("read", 1), ("pad", 5), ("write", 1), ("error", 1),
    )),
    Device(0x20, "Screen", _fields(
        ("vector", 2), ("width", 2), ("height", 2), ("auto", 1), ("pad", 1),
        ("x", 2), ("y", 2), ("addr", 2), ("pixel", 1), ("sprite", 1),
    )),
    Device(0x30, "Audio0", _AUDIO_FIELDS),
    Device(0x40, "Audio1", _AUDIO_FIELDS),
    Device(0x50, "Audio2", _AUDIO_FIELDS),
    Device(0x60, "Audio3", _AUDIO_FIELDS),
    Device(0x80, "Controller", _fields(
        ("vector", 2), ("button", 1), ("key", 1), ("func", 1),
    )),
    Device(0x90, "Mouse", _fields(
        ("vector", 2), ("x", 2), ("y", 2), ("state", 1), ("pad", 3),
        ("scrollx", 2), ("scrolly", 2),
    )),
    Device(0xA0, "File0", _FILE_FIELDS),
    Device(0xB0, "File1", _FILE_FIELDS),
    Device(0xC0, "DateTime", _fields(
        ("year", 2), ("month", 1), ("day", 1), ("hour", 1), ("minute", 1),
        ("second", 1), ("dotw", 1), ("doty", 2), ("isdst", 1),
    )),
)

_DEFAULT_MAP = DeviceMap(DEFAULT_DEVICES)
