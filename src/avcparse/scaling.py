"""
Scaling lists carried in SPS and PPS (H.264 7.3.2.1.1.1).

Lists are stored as transmitted, in zig-zag order. resolve() applies the
fall-back rules of Table 7-2 and returns the weight matrices in raster
order as numpy arrays, which is what a caller computing quantiser
statistics wants.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .bitstream import BitstreamReader
from .errors import RangeViolationError


def _zigzag(n: int) -> np.ndarray:
    """Raster index of each zig-zag scan position for an n x n frame block."""
    order = []
    for s in range(2 * n - 1):
        rows = range(max(0, s - n + 1), min(s, n - 1) + 1)
        if s % 2 == 0:
            rows = reversed(rows)
        order.extend(r * n + (s - r) for r in rows)
    return np.array(order, dtype=np.intp)


ZIGZAG_4X4 = _zigzag(4)
ZIGZAG_8X8 = _zigzag(8)

# Table 7-3 and 7-4, zig-zag order.
DEFAULT_4X4_INTRA = np.array(
    [6, 13, 13, 20, 20, 20, 28, 28, 28, 28, 32, 32, 32, 37, 37, 42], dtype=np.int32)
DEFAULT_4X4_INTER = np.array(
    [10, 14, 14, 20, 20, 20, 24, 24, 24, 24, 27, 27, 27, 30, 30, 34], dtype=np.int32)
DEFAULT_8X8_INTRA = np.array([
    6, 10, 10, 13, 11, 13, 16, 16, 16, 16, 18, 18, 18, 18, 18, 23,
    23, 23, 23, 23, 23, 25, 25, 25, 25, 25, 25, 25, 27, 27, 27, 27,
    27, 27, 27, 27, 29, 29, 29, 29, 29, 29, 29, 31, 31, 31, 31, 31,
    31, 33, 33, 33, 33, 33, 36, 36, 36, 36, 38, 38, 38, 40, 40, 42], dtype=np.int32)
DEFAULT_8X8_INTER = np.array([
    9, 13, 13, 15, 13, 15, 17, 17, 17, 17, 19, 19, 19, 19, 19, 21,
    21, 21, 21, 21, 21, 22, 22, 22, 22, 22, 22, 22, 24, 24, 24, 24,
    24, 24, 24, 24, 25, 25, 25, 25, 25, 25, 25, 27, 27, 27, 27, 27,
    27, 28, 28, 28, 28, 28, 30, 30, 30, 30, 32, 32, 32, 33, 33, 35], dtype=np.int32)

FLAT_16 = 16


def list_size(index: int) -> int:
    """Lists 0-5 are 4x4, lists 6-11 are 8x8."""
    return 16 if index < 6 else 64


def default_list(index: int) -> np.ndarray:
    if index < 6:
        return DEFAULT_4X4_INTRA if index < 3 else DEFAULT_4X4_INTER
    return DEFAULT_8X8_INTRA if index % 2 == 0 else DEFAULT_8X8_INTER


def to_raster(values: Sequence[int]) -> np.ndarray:
    """Zig-zag ordered coefficients to a square raster matrix."""
    values = np.asarray(values, dtype=np.int32)
    n = 4 if len(values) == 16 else 8
    scan = ZIGZAG_4X4 if n == 4 else ZIGZAG_8X8
    matrix = np.empty(n * n, dtype=np.int32)
    matrix[scan] = values
    return matrix.reshape(n, n)


@dataclass(frozen=True)
class ScalingList:
    values: Tuple[int, ...]
    use_default_scaling_matrix_flag: bool = False

    @classmethod
    def read(cls, r: BitstreamReader, size: int) -> "ScalingList":
        last_scale = 16
        next_scale = 16
        values = []
        for j in range(size):
            if next_scale != 0:
                delta_scale = r.read_se("delta_scale")
                if not -128 <= delta_scale <= 127:
                    raise RangeViolationError("delta_scale", delta_scale)
                next_scale = (last_scale + delta_scale + 256) % 256
                if j == 0 and next_scale == 0:
                    return cls((), True)
            scale = last_scale if next_scale == 0 else next_scale
            values.append(scale)
            last_scale = scale
        return cls(tuple(values))


@dataclass(frozen=True)
class ScalingMatrix:
    """
    Scaling lists of one SPS or PPS. lists[i] is None where
    scaling_list_present_flag[i] was 0.
    """
    lists: Tuple[Optional[ScalingList], ...]

    @classmethod
    def read(cls, r: BitstreamReader, count: int) -> "ScalingMatrix":
        lists = []
        for i in range(count):
            if r.read_flag("scaling_list_present_flag"):
                lists.append(ScalingList.read(r, list_size(i)))
            else:
                lists.append(None)
        return cls(tuple(lists))

    def __len__(self) -> int:
        return len(self.lists)

    def resolve(self, fallback: Optional[Sequence[np.ndarray]] = None) -> List[np.ndarray]:
        """
        Apply fall-back rule A (fallback is None) or rule B (fallback holds
        the resolved sequence-level matrices) and return raster matrices.
        """
        resolved: List[np.ndarray] = []
        for i, scaling_list in enumerate(self.lists):
            if scaling_list is None:
                if i in (0, 3, 6, 7):
                    if fallback is not None and i < len(fallback):
                        resolved.append(fallback[i])
                    else:
                        resolved.append(to_raster(default_list(i)))
                else:
                    resolved.append(resolved[i - 1 if i < 6 else i - 2])
            elif scaling_list.use_default_scaling_matrix_flag:
                resolved.append(to_raster(default_list(i)))
            else:
                resolved.append(to_raster(scaling_list.values))
        return resolved


def flat_matrices(count: int) -> List[np.ndarray]:
    """Flat_4x4_16 / Flat_8x8_16, used when no scaling matrix is sent."""
    return [np.full((4, 4) if i < 6 else (8, 8), FLAT_16, dtype=np.int32) for i in range(count)]
