"""KeyMath: maps 1-based piano key numbers to note names and key colour."""

# Chromatic note names, index 0 = A (key 1 on a standard 88-key piano is A0)
NOTE_NAMES: list[str] = ["A", "A#", "B", "C", "C#", "D", "D#", "E", "F", "F#", "G", "G#"]

#: Offsets within an A-based octave that fall on black keys (A#, C#, D#, F#, G#)
BLACK_KEY_OFFSETS: frozenset[int] = frozenset({1, 4, 6, 9, 11})

KEYS_PER_OCTAVE = 12
STANDARD_KEY_COUNT = 88

# Key 1 is A0, but octave numbers roll over at C, nine semitones above A.
_C_OFFSET = 9


def note_name(key_number: int, starting_note_index: int = 0) -> str:
    """
    Return the scientific pitch name for a 1-based key number.

    Key 1 is A0, key 40 is middle C (C4), key 49 is A4 and key 88 is C8.

    Args:
        key_number:          1-based key number as stored in the data file.
        starting_note_index: Offset for instruments whose lowest key is not A0.

    Returns:
        Note name with octave, e.g. ``"C#4"``.
    """
    position = key_number + starting_note_index - 1
    octave = (position + _C_OFFSET) // KEYS_PER_OCTAVE
    return f"{NOTE_NAMES[position % KEYS_PER_OCTAVE]}{octave}"


def is_black_key(key_number: int, starting_note_index: int = 0) -> bool:
    """True if the key is one of the five black keys of its octave."""
    return (key_number + starting_note_index - 1) % KEYS_PER_OCTAVE in BLACK_KEY_OFFSETS
