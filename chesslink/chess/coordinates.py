"""
Mapping between a linear square index and the rule engine's square names.

Index 0 is 'a1', 7 is 'h1', 8 is 'a2' ... 63 is 'h8': row = rank - 1, col = file - 1.
"""

from string import ascii_lowercase

from chesslink.core.exceptions import InvalidSquareNameError, SquareIndexError
from chesslink.core.shared_types import SquareName

# Chess board is always 8x8.
BOARD_DIMENSIONS = (8, 8)
SQUARE_COUNT = BOARD_DIMENSIONS[0] * BOARD_DIMENSIONS[1]

FILE_NAMES = ascii_lowercase[: BOARD_DIMENSIONS[0]]


def row_of(idx: int) -> int:
    return idx // BOARD_DIMENSIONS[0]


def col_of(idx: int) -> int:
    return idx % BOARD_DIMENSIONS[0]


def is_valid_index(idx: object) -> bool:
    """For boundaries that accept external input: check instead of trapping."""
    return isinstance(idx, int) and not isinstance(idx, bool) and 0 <= idx < SQUARE_COUNT


def check_index(idx: int) -> int:
    """Precondition for internal call sites. An invalid index here is a bug, not a user error."""
    if not is_valid_index(idx):
        raise SquareIndexError(f"invalid square index {idx!r}")
    return idx


def is_light(idx: int) -> bool:
    """Square colour follows from the index alone, it is never stored."""
    return (row_of(idx) % 2) != (col_of(idx) % 2)


def idx_to_name(idx: int) -> SquareName:
    """12 -> 'e2'"""
    check_index(idx)
    return f"{FILE_NAMES[col_of(idx)]}{row_of(idx) + 1}"


def name_to_idx(name: SquareName) -> int:
    """'e2' -> 12"""
    if len(name) != 2 or name[0] not in FILE_NAMES or not name[1].isdigit():
        raise InvalidSquareNameError(f"Cannot interpret {name!r} as a square name.")

    col = FILE_NAMES.index(name[0])
    row = int(name[1]) - 1
    if not 0 <= row < BOARD_DIMENSIONS[1]:
        raise InvalidSquareNameError(f"Cannot interpret {name!r} as a square name.")
    return row * BOARD_DIMENSIONS[0] + col
