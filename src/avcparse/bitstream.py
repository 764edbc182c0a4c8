from typing import Union

from .errors import RangeViolationError, TruncatedError, ValueOverflowError

BytesLike = Union[bytes, bytearray, memoryview]

# Longest Exp-Golomb prefix that still fits a 32-bit code number.
MAX_EXP_GOLOMB_PREFIX = 31


class BitstreamReader:
    """
    Utility to read an escape-free bitstream MSB first.
    Essential for parsing H.264 headers (Exp-Golomb codes).

    Every read takes the name of the syntax element so that a failure
    can say which field ran off the end of the data.
    """
    def __init__(self, data: BytesLike):
        self.data = data
        self.byte_offset = 0
        self.bit_offset = 0 # 0 to 7 (MSB to LSB)
        self._last_one = None

    @property
    def position(self) -> int:
        """Number of bits consumed so far."""
        return self.byte_offset * 8 + self.bit_offset

    @property
    def bits_left(self) -> int:
        return len(self.data) * 8 - self.position

    def _advance(self, n: int):
        pos = self.position + n
        self.byte_offset = pos >> 3
        self.bit_offset = pos & 7

    def read_bits(self, n: int, name: str = "bits") -> int:
        """Read n (0..32) bits and return as integer."""
        if not 0 <= n <= 32:
            raise ValueError(f"read_bits supports 0..32 bits, got {n}")
        if n == 0:
            return 0
        if n > self.bits_left:
            raise TruncatedError(name)

        pos = self.position
        first = pos >> 3
        last = (pos + n + 7) >> 3
        chunk = int.from_bytes(self.data[first:last], "big")
        shift = last * 8 - (pos + n)
        self._advance(n)
        return (chunk >> shift) & ((1 << n) - 1)

    def read_flag(self, name: str = "flag") -> bool:
        """Read a single bit as a boolean."""
        return self.read_bits(1, name) == 1

    def read_u8(self, name: str = "u8") -> int:
        return self.read_bits(8, name)

    def read_signed(self, n: int, name: str = "i(n)") -> int:
        """Read an n-bit two's complement value."""
        value = self.read_bits(n, name)
        if n and value & (1 << (n - 1)):
            value -= 1 << n
        return value

    def skip_bits(self, n: int, name: str = "skip"):
        if n > self.bits_left:
            raise TruncatedError(name)
        self._advance(n)

    def read_ue(self, name: str = "ue(v)") -> int:
        """
        Read Unsigned Exponential-Golomb (ue(v)) code.
        Used extensively in H.264 headers.

        A prefix longer than 31 zero bits cannot come from a conforming
        encoder and is reported as corruption instead of saturating.
        """
        leading_zeros = 0
        while not self.read_flag(name):
            leading_zeros += 1
            if leading_zeros > MAX_EXP_GOLOMB_PREFIX:
                raise ValueOverflowError(name, "Exp-Golomb prefix longer than 31 bits")

        if leading_zeros == 0:
            return 0

        rem = self.read_bits(leading_zeros, name)
        return (1 << leading_zeros) - 1 + rem

    def read_se(self, name: str = "se(v)") -> int:
        """
        Read Signed Exponential-Golomb (se(v)) code.
        """
        code_num = self.read_ue(name)
        if code_num == 0:
            return 0

        # Map back to signed: 1->1, 2->-1, 3->2, 4->-2 ...
        sign = 1 if (code_num % 2 != 0) else -1
        return sign * ((code_num + 1) // 2)

    def read_ue_max(self, name: str, maximum: int) -> int:
        """ue(v) with an inclusive upper bound."""
        value = self.read_ue(name)
        if value > maximum:
            raise RangeViolationError(name, value, f"maximum is {maximum}")
        return value

    def read_se_range(self, name: str, minimum: int, maximum: int) -> int:
        value = self.read_se(name)
        if not minimum <= value <= maximum:
            raise RangeViolationError(name, value, f"allowed range is {minimum}..{maximum}")
        return value

    def is_byte_aligned(self) -> bool:
        return self.bit_offset == 0

    def byte_align(self):
        """Skip to next byte boundary."""
        if self.bit_offset != 0:
            self.bit_offset = 0
            self.byte_offset += 1

    @property
    def bytes_left(self) -> int:
        return len(self.data) - self.byte_offset

    def _last_one_bit(self) -> int:
        """Bit position of the final 1 bit in the data, or -1."""
        if self._last_one is None:
            self._last_one = self._find_last_one()
        return self._last_one

    def _find_last_one(self) -> int:
        for i in range(len(self.data) - 1, -1, -1):
            byte = self.data[i]
            if byte:
                trailing = (byte & -byte).bit_length() - 1
                return i * 8 + (7 - trailing)
        return -1

    def has_more_rbsp_data(self) -> bool:
        """True while anything other than rbsp_trailing_bits() is left."""
        return self.position < self._last_one_bit()

    def skip_to_trailing_bits(self):
        """Skip reserved *_extension_data_flag bits up to rbsp_trailing_bits()."""
        last = self._last_one_bit()
        if last > self.position:
            self._advance(last - self.position)

    def finish_rbsp(self):
        """Consume rbsp_trailing_bits(), failing if real data is left over."""
        if self.bits_left == 0:
            raise TruncatedError("rbsp_stop_one_bit")
        if not self.read_flag("rbsp_stop_one_bit"):
            raise RangeViolationError("rbsp_stop_one_bit", 0)
        if self._last_one_bit() >= self.position:
            raise RangeViolationError(
                "rbsp_trailing_bits", self.bits_left, "data remains after the stop bit"
            )
        self._advance(self.bits_left)

    def finish_sei_payload(self):
        """
        Check the end of an SEI payload: either nothing is left, or a
        single 1 bit followed by zero bits (bit_equal_to_one and
        bit_equal_to_zero of D.1.1).
        """
        if self.bits_left == 0:
            return
        if not self.read_flag("bit_equal_to_one"):
            raise RangeViolationError("bit_equal_to_one", 0, "data remains in SEI payload")
        if self._last_one_bit() >= self.position:
            raise RangeViolationError(
                "sei_payload", self.bits_left, "data remains after the payload end bit"
            )
        self._advance(self.bits_left)


class BitstreamWriter:
    """
    Mirror of BitstreamReader: packs fixed-width and Exp-Golomb fields.
    """
    def __init__(self):
        self._value = 0
        self._nbits = 0

    @property
    def bit_length(self) -> int:
        return self._nbits

    def write_bits(self, n: int, value: int):
        if n < 0:
            raise ValueError(f"bit count must be non-negative, got {n}")
        if value < 0 or value >> n:
            raise ValueError(f"{value} does not fit in {n} bits")
        self._value = (self._value << n) | value
        self._nbits += n

    def write_flag(self, flag: bool):
        self.write_bits(1, 1 if flag else 0)

    def write_u8(self, value: int):
        self.write_bits(8, value)

    def write_signed(self, n: int, value: int):
        if not -(1 << (n - 1)) <= value < (1 << (n - 1)):
            raise ValueError(f"{value} does not fit in {n} signed bits")
        self.write_bits(n, value & ((1 << n) - 1))

    def write_ue(self, value: int):
        if not 0 <= value <= (1 << 32) - 2:
            raise ValueError(f"ue(v) cannot encode {value}")
        code_num = value + 1
        bits = code_num.bit_length()
        self.write_bits(bits - 1, 0)
        self.write_bits(bits, code_num)

    def write_se(self, value: int):
        # 1->1, -1->2, 2->3, -2->4 ...
        if value > 0:
            self.write_ue(2 * value - 1)
        else:
            self.write_ue(-2 * value)

    def byte_align(self):
        """Pad with zero bits up to the next byte boundary."""
        self.write_bits(-self._nbits % 8, 0)

    def write_rbsp_trailing_bits(self):
        self.write_bits(1, 1)
        self.byte_align()

    def getvalue(self) -> bytes:
        """Bytes written so far, zero padded to a whole byte."""
        pad = -self._nbits % 8
        return (self._value << pad).to_bytes((self._nbits + pad) // 8, "big")
