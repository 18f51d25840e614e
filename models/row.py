"""Fixed-width row record.

Struct format reference (https://docs.python.org/3/library/struct.html):
    <  = little-endian byte order
    I  = unsigned int (4 bytes)

Slot layout (291 bytes):
    offset  size  field
    ------  ----  -----
    0       4     id
    4       32    username (NUL-terminated within the field)
    36      255   email (NUL-terminated within the field)
"""

import struct
from typing import ClassVar, Self

from pydantic import BaseModel, Field, field_validator

from exceptions import StringTooLong

ID_FMT = "<I"
ID_SIZE = struct.calcsize(ID_FMT)
USERNAME_SIZE = 32
EMAIL_SIZE = 255

ID_OFFSET = 0
USERNAME_OFFSET = ID_OFFSET + ID_SIZE
EMAIL_OFFSET = USERNAME_OFFSET + USERNAME_SIZE
ROW_SIZE = ID_SIZE + USERNAME_SIZE + EMAIL_SIZE

# One byte per string field is reserved for the terminator
USERNAME_MAX_BYTES = USERNAME_SIZE - 1
EMAIL_MAX_BYTES = EMAIL_SIZE - 1

MAX_ID = 0xFFFFFFFF


def _read_field(data: bytes, offset: int, size: int) -> str:
    raw = bytes(data[offset : offset + size])
    return raw.split(b"\x00", 1)[0].decode("utf-8", errors="replace")


def _write_field(slot: bytearray, offset: int, size: int, value: bytes) -> None:
    # Clear the whole field first so a shorter string never leaves stale bytes behind
    slot[offset : offset + size] = bytes(size)
    slot[offset : offset + len(value)] = value


class Row(BaseModel):
    """One record of the single fixed table schema.

    String capacities are measured in UTF-8 bytes, not characters.
    """

    SIZE: ClassVar[int] = ROW_SIZE

    id: int = Field(ge=0, le=MAX_ID)
    username: str
    email: str

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        if len(v.encode("utf-8")) > USERNAME_MAX_BYTES:
            raise ValueError(f"username string is too long. (>{USERNAME_MAX_BYTES})")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        if len(v.encode("utf-8")) > EMAIL_MAX_BYTES:
            raise ValueError(f"email string is too long. (>{EMAIL_MAX_BYTES})")
        return v

    @classmethod
    def new(cls, id: int, username: str, email: str) -> Self:
        """Build a row, raising StringTooLong when a field exceeds its capacity."""
        if len(username.encode("utf-8")) > USERNAME_MAX_BYTES:
            raise StringTooLong(f"username string is too long. (>{USERNAME_MAX_BYTES})")
        if len(email.encode("utf-8")) > EMAIL_MAX_BYTES:
            raise StringTooLong(f"email string is too long. (>{EMAIL_MAX_BYTES})")
        return cls(id=id, username=username, email=email)

    def serialize(self, slot: bytearray) -> None:
        """Encode this row in place into a ROW_SIZE slot buffer."""
        if len(slot) != ROW_SIZE:
            raise ValueError(f"Slot must be exactly {ROW_SIZE} bytes, got {len(slot)}")

        struct.pack_into(ID_FMT, slot, ID_OFFSET, self.id)
        _write_field(slot, USERNAME_OFFSET, USERNAME_SIZE, self.username.encode("utf-8"))
        _write_field(slot, EMAIL_OFFSET, EMAIL_SIZE, self.email.encode("utf-8"))

    @classmethod
    def deserialize(cls, slot: bytes | bytearray) -> Self:
        """Decode a row from a slot buffer.

        Each string stops at the first zero byte of its field. Invalid UTF-8 is
        replaced rather than rejected, so the result is built without the
        capacity validators.
        """
        if len(slot) < ROW_SIZE:
            raise ValueError(f"Data too short: expected at least {ROW_SIZE} bytes, got {len(slot)}")

        (row_id,) = struct.unpack_from(ID_FMT, slot, ID_OFFSET)
        username = _read_field(slot, USERNAME_OFFSET, USERNAME_SIZE)
        email = _read_field(slot, EMAIL_OFFSET, EMAIL_SIZE)
        return cls.model_construct(id=row_id, username=username, email=email)

    def to_bytes(self) -> bytes:
        """Serialize to a fresh ROW_SIZE buffer."""
        slot = bytearray(ROW_SIZE)
        self.serialize(slot)
        return bytes(slot)

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        return cls.deserialize(data)

    def __str__(self) -> str:
        return f"({self.id}, {self.username}, {self.email})"
