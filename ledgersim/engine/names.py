# ledgersim/engine/names.py
#
# Account, table and scope names are 64-bit integers holding up to 13 characters
# of a base-32 alphabet. The first 12 characters take 5 bits each, the 13th
# takes the remaining 4 bits.

NAME_CHARS = ".12345abcdefghijklmnopqrstuvwxyz"
MAX_NAME_LENGTH = 13
UINT64_MASK = (1 << 64) - 1


def _char_to_symbol(char):
    index = NAME_CHARS.find(char)
    if index < 0:
        raise ValueError(f"Invalid character '{char}' in name")
    return index


def string_to_name(text: str) -> int:
    """Encode a name string into its 64-bit integer handle.

    Names are case-insensitive; the input is lower-cased before encoding.
    """
    text = str(text).lower()
    if len(text) > MAX_NAME_LENGTH:
        raise ValueError(f"Name '{text}' is longer than {MAX_NAME_LENGTH} characters")

    value = 0
    for i, char in enumerate(text):
        symbol = _char_to_symbol(char)
        if i < 12:
            value |= (symbol & 0x1F) << (64 - 5 * (i + 1))
        else:
            if symbol > 0x0F:
                raise ValueError(f"Thirteenth character of name '{text}' must be one of '{NAME_CHARS[:16]}'")
            value |= symbol & 0x0F
    return value


def name_to_string(value: int) -> str:
    """Decode a 64-bit handle into its name string, trailing dots removed."""
    if value < 0 or value > UINT64_MASK:
        raise ValueError(f"Name value {value} is not an unsigned 64-bit integer")

    chars = ['.'] * MAX_NAME_LENGTH
    tmp = value
    for i in range(MAX_NAME_LENGTH):
        mask = 0x0F if i == 0 else 0x1F
        chars[12 - i] = NAME_CHARS[tmp & mask]
        tmp >>= 4 if i == 0 else 5
    return ''.join(chars).rstrip('.')


def normalize_name(name) -> str:
    """Canonical string form of a name given as a string, an int handle, or an Account."""
    if hasattr(name, 'name') and not isinstance(name, str):
        name = name.name
    if isinstance(name, int):
        return name_to_string(name)
    return name_to_string(string_to_name(name))
