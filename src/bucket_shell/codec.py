"""Entry codecs — view raw stored bytes as text, integers, or timestamps.

Stored values carry no type information.  The same bytes can be viewed
through any codec on demand:

- **RAW** — the bytes themselves, shown with the display rule.
- **UVARINT** — an unsigned LEB128 varint (7 payload bits per byte,
  low group first, high bit = "more").
- **TIME** — a 15/16-byte binary timestamp::

      byte 0       version (1, or 2 when the zone has second precision)
      bytes 1-8    seconds since 0001-01-01 00:00:00 UTC (big-endian int64)
      bytes 9-12   nanoseconds within the second (big-endian int32)
      bytes 13-14  zone offset in minutes east of UTC, -1 meaning UTC
      byte 15      (version 2 only) extra zone offset seconds

Decoders are strict: anything that does not parse exactly raises
``DecodeError`` rather than producing a plausible-looking wrong value.
``encode_text`` goes the other way, for values typed at the shell, and
fails with ``EncodeError``.

The display rule lives here too.  It only ever formats output; nothing
in the navigator branches on it.
"""

import struct
from datetime import UTC, datetime, timedelta, timezone
from enum import StrEnum

from bucket_shell.errors import DecodeError, EncodeError

_MAX_VARINT_LEN = 10
_CONTINUATION = 0x80
_PAYLOAD_MASK = 0x7F
_MAX_UINT64 = (1 << 64) - 1

_TIME_V1 = 1
_TIME_V2 = 2
_TIME_V1_LAYOUT = struct.Struct(">Bqih")
_TIME_V2_LAYOUT = struct.Struct(">Bqihb")
_UTC_OFFSET_SENTINEL = -1
_NANOS_PER_SECOND = 1_000_000_000
_NANOS_PER_MICRO = 1_000
_SECONDS_PER_MINUTE = 60
_SECONDS_PER_DAY = 86_400

# Timestamp epoch: January 1, year 1, 00:00:00 UTC.
_EPOCH = datetime(1, 1, 1, tzinfo=UTC)

_PRINTABLE_LOW = 0x20
_PRINTABLE_HIGH = 0x7E


class Codec(StrEnum):
    """The ways a stored value can be interpreted."""

    RAW = "raw"
    UVARINT = "int"
    TIME = "time"


def display(data: bytes) -> str:
    """Render bytes for the terminal.

    Printable ASCII is shown as text.  Anything else is shown as a list
    of byte values, e.g. ``[104 105 255]``, so control characters and
    binary data never reach the terminal raw.
    """
    if all(_PRINTABLE_LOW <= b <= _PRINTABLE_HIGH for b in data):
        return data.decode("ascii")
    return "[" + " ".join(str(b) for b in data) + "]"


def encode_uvarint(number: int) -> bytes:
    """Encode a non-negative integer as an unsigned varint.

    Raises:
        ValueError: If *number* is negative or does not fit in 64 bits.

    """
    if number < 0 or number > _MAX_UINT64:
        msg = f"uvarint out of range: {number}"
        raise ValueError(msg)
    out = bytearray()
    while number >= _CONTINUATION:
        out.append((number & _PAYLOAD_MASK) | _CONTINUATION)
        number >>= 7
    out.append(number)
    return bytes(out)


def decode_uvarint(data: bytes) -> int:
    """Decode a value that holds exactly one unsigned varint.

    Raises:
        DecodeError: If the value is empty, truncated, overflows 64 bits,
            or has bytes left over after the varint.

    """
    if not data:
        msg = "empty value is not a varint"
        raise DecodeError(msg)

    result = 0
    shift = 0
    for i, byte in enumerate(data):
        if i == _MAX_VARINT_LEN:
            msg = "varint overflows 64 bits"
            raise DecodeError(msg)
        if byte < _CONTINUATION:
            if i == _MAX_VARINT_LEN - 1 and byte > 1:
                msg = "varint overflows 64 bits"
                raise DecodeError(msg)
            trailing = len(data) - i - 1
            if trailing:
                msg = f"{trailing} trailing byte(s) after varint"
                raise DecodeError(msg)
            return result | (byte << shift)
        result |= (byte & _PAYLOAD_MASK) << shift
        shift += 7

    msg = "truncated varint"
    raise DecodeError(msg)


def encode_time(moment: datetime) -> bytes:
    """Encode a datetime in the binary timestamp layout.

    Naive datetimes are taken to be UTC.

    Raises:
        ValueError: If the zone offset cannot be represented, or the
            moment falls outside years 1-9999 once moved to UTC.

    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)

    try:
        delta = moment.astimezone(UTC) - _EPOCH
    except OverflowError as e:
        msg = f"timestamp out of range: {moment.isoformat()}"
        raise ValueError(msg) from e
    seconds = delta.days * _SECONDS_PER_DAY + delta.seconds
    nanos = delta.microseconds * _NANOS_PER_MICRO

    if moment.tzinfo is UTC:
        return _TIME_V1_LAYOUT.pack(_TIME_V1, seconds, nanos, _UTC_OFFSET_SENTINEL)

    offset = moment.utcoffset()
    if offset is None:
        msg = f"zone has no fixed offset: {moment.tzinfo}"
        raise ValueError(msg)
    total = int(offset.total_seconds())
    sign = -1 if total < 0 else 1
    minutes, extra_seconds = divmod(abs(total), _SECONDS_PER_MINUTE)
    offset_minutes = sign * minutes
    if offset_minutes == _UTC_OFFSET_SENTINEL:
        msg = f"zone offset cannot be encoded: {offset}"
        raise ValueError(msg)
    if extra_seconds:
        return _TIME_V2_LAYOUT.pack(_TIME_V2, seconds, nanos, offset_minutes, sign * extra_seconds)
    return _TIME_V1_LAYOUT.pack(_TIME_V1, seconds, nanos, offset_minutes)


def decode_time(data: bytes) -> datetime:
    """Decode a binary timestamp into an aware datetime.

    Sub-microsecond digits are dropped because ``datetime`` cannot hold
    them.

    Raises:
        DecodeError: On an empty value, unknown version, wrong length, or
            values outside what ``datetime`` can represent.

    """
    if not data:
        msg = "empty value is not a timestamp"
        raise DecodeError(msg)

    version = data[0]
    if version == _TIME_V1:
        layout = _TIME_V1_LAYOUT
    elif version == _TIME_V2:
        layout = _TIME_V2_LAYOUT
    else:
        msg = f"unsupported timestamp version: {version}"
        raise DecodeError(msg)

    if len(data) != layout.size:
        msg = f"invalid timestamp length: {len(data)} bytes (want {layout.size})"
        raise DecodeError(msg)

    fields = layout.unpack(data)
    seconds, nanos, offset_minutes = fields[1], fields[2], fields[3]
    extra_seconds = fields[4] if version == _TIME_V2 else 0

    if not 0 <= nanos < _NANOS_PER_SECOND:
        msg = f"nanoseconds out of range: {nanos}"
        raise DecodeError(msg)

    try:
        moment = _EPOCH + timedelta(seconds=seconds, microseconds=nanos // _NANOS_PER_MICRO)
        if offset_minutes == _UTC_OFFSET_SENTINEL:
            return moment
        offset = offset_minutes * _SECONDS_PER_MINUTE + extra_seconds
        return moment.astimezone(timezone(timedelta(seconds=offset)))
    except (OverflowError, ValueError) as e:
        msg = f"timestamp out of range: {e}"
        raise DecodeError(msg) from e


def decode(data: bytes, codec: Codec) -> bytes | int | datetime:
    """Interpret *data* through *codec*.

    Raises:
        DecodeError: If *data* is malformed for *codec*.

    """
    match codec:
        case Codec.RAW:
            return data
        case Codec.UVARINT:
            return decode_uvarint(data)
        case Codec.TIME:
            return decode_time(data)


def encode_text(text: str, codec: Codec) -> bytes:
    """Turn text typed at the shell into stored bytes for *codec*.

    ``UVARINT`` takes a decimal unsigned integer and ``TIME`` an
    ISO-8601 timestamp; ``RAW`` stores the text's UTF-8 bytes.

    Raises:
        EncodeError: If *text* does not parse, or parses to a value the
            codec cannot hold.

    """
    match codec:
        case Codec.RAW:
            return text.encode()
        case Codec.UVARINT:
            try:
                return encode_uvarint(int(text))
            except ValueError as e:
                msg = f"invalid unsigned integer '{text}'"
                raise EncodeError(msg) from e
        case Codec.TIME:
            try:
                return encode_time(datetime.fromisoformat(text))
            except ValueError as e:
                msg = f"invalid timestamp '{text}'"
                raise EncodeError(msg) from e
