"""
Standard-alphabet base64 codec used by the b64encode/b64decode functions.

`decode` takes a fast path that assembles 8 (then 4) alphabet characters
at a time and drops to the single-quantum decoder whenever it meets
anything else. `decode_quanta` runs the single-quantum decoder alone and
is the reference the fast path must agree with byte for byte.
"""

from typing import Tuple, Union

from jpscript.jpscript_datatypes import Base64FormatError, EmptyInputError

ALPHABET = b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
PAD = ord("=")
INVALID = 0xFF
_NEWLINES = (ord("\n"), ord("\r"))


def _build_decode_map() -> bytes:
    table = bytearray([INVALID] * 256)
    for i, ch in enumerate(ALPHABET):
        table[ch] = i
    return bytes(table)


DECODE_MAP = _build_decode_map()


def encode(data: Union[bytes, bytearray]) -> str:
    if not data:
        raise EmptyInputError("cannot base64-encode an empty string")
    out = bytearray()
    n = len(data) // 3 * 3
    for si in range(0, n, 3):
        val = data[si] << 16 | data[si + 1] << 8 | data[si + 2]
        out += bytes((
            ALPHABET[val >> 18 & 0x3F],
            ALPHABET[val >> 12 & 0x3F],
            ALPHABET[val >> 6 & 0x3F],
            ALPHABET[val & 0x3F],
        ))
    remain = len(data) - n
    if remain:
        val = data[n] << 16
        if remain == 2:
            val |= data[n + 1] << 8
        out.append(ALPHABET[val >> 18 & 0x3F])
        out.append(ALPHABET[val >> 12 & 0x3F])
        if remain == 2:
            out.append(ALPHABET[val >> 6 & 0x3F])
            out.append(PAD)
        else:
            out += b"=="
    return out.decode("ascii")


def _as_bytes(src: Union[str, bytes, bytearray]) -> bytes:
    if isinstance(src, str):
        try:
            return src.encode("ascii")
        except UnicodeEncodeError as e:
            raise Base64FormatError("illegal base64 data", e.start) from e
    return bytes(src)


def _skip_newlines(src: bytes, si: int) -> int:
    while si < len(src) and src[si] in _NEWLINES:
        si += 1
    return si


def decode_quantum(dst: bytearray, src: bytes, si: int) -> Tuple[int, bool]:
    """Decode one 4-character quantum starting at `si`, appending to `dst`.

    Returns the new source index and whether the quantum ended the input
    (padding seen or source exhausted).
    """
    dbuf = [0, 0, 0, 0]
    dlen = 4
    j = 0
    while j < 4:
        if si == len(src):
            if j == 0:
                return si, True
            if j == 1:
                raise Base64FormatError("truncated base64 data", si - 1)
            dlen = j
            break
        ch = src[si]
        si += 1

        out = DECODE_MAP[ch]
        if out != INVALID:
            dbuf[j] = out
            j += 1
            continue

        if ch in _NEWLINES:
            continue

        if ch != PAD:
            raise Base64FormatError("illegal base64 character", si - 1)

        # Padding: only valid after two or three data characters of the final quantum.
        if j < 2:
            raise Base64FormatError("incorrect base64 padding", si - 1)
        if j == 2:
            # "==" is required; the first "=" is already consumed.
            si = _skip_newlines(src, si)
            if si == len(src):
                raise Base64FormatError("not enough base64 padding", si)
            if src[si] != PAD:
                raise Base64FormatError("incorrect base64 padding", si)
            si += 1
        si = _skip_newlines(src, si)
        if si < len(src):
            raise Base64FormatError("trailing data after base64 padding", si)
        dlen = j
        break

    val = dbuf[0] << 18 | dbuf[1] << 12 | dbuf[2] << 6 | dbuf[3]
    chunk = bytes((val >> 16 & 0xFF, val >> 8 & 0xFF, val & 0xFF))
    dst += chunk[:dlen - 1]
    return si, dlen < 4


def decode_quanta(src: Union[str, bytes, bytearray]) -> bytes:
    """Reference decoder: one quantum at a time, no fast path."""
    data = _as_bytes(src)
    dst = bytearray()
    si = 0
    while si < len(data):
        si, done = decode_quantum(dst, data, si)
        if done:
            break
    return bytes(dst)


def _assemble(data: bytes, si: int, width: int):
    """Pack `width` alphabet characters into an int, or None if any is not in the alphabet."""
    acc = 0
    for ch in data[si:si + width]:
        n = DECODE_MAP[ch]
        if n == INVALID:
            return None
        acc = acc << 6 | n
    return acc


def decode(src: Union[str, bytes, bytearray]) -> bytes:
    data = _as_bytes(src)
    dst = bytearray()
    si = 0
    end = len(data)

    while end - si >= 8:
        dn = _assemble(data, si, 8)
        if dn is not None:
            dst += dn.to_bytes(6, "big")
            si += 8
            continue
        si, done = decode_quantum(dst, data, si)
        if done:
            return bytes(dst)

    while end - si >= 4:
        dn = _assemble(data, si, 4)
        if dn is not None:
            dst += dn.to_bytes(3, "big")
            si += 4
            continue
        si, done = decode_quantum(dst, data, si)
        if done:
            return bytes(dst)

    while si < end:
        si, done = decode_quantum(dst, data, si)
        if done:
            break
    return bytes(dst)
