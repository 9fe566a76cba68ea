import datetime

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
ETHER_DECIMALS = 18


def standardize_address(address: str) -> str:
    address = address.lower().removeprefix("0x")
    return "0x" + address.zfill(40)


def addresses_equal(a: str | None, b: str | None) -> bool:
    if a is None or b is None:
        return False
    return standardize_address(a) == standardize_address(b)


def format_units(value: int, decimals: int = ETHER_DECIMALS) -> str:
    """
    Renders an integer amount of the smallest unit as a decimal string, always
    keeping at least one fractional digit: 10**18 -> "1.0", 15 * 10**16 -> "0.15".
    """
    sign = "-" if value < 0 else ""
    whole, fraction = divmod(abs(int(value)), 10**decimals)
    fraction_str = str(fraction).zfill(decimals).rstrip("0") or "0"
    return f"{sign}{whole}.{fraction_str}"



def convert_block_timestamp_to_datetime(timestamp: int) -> datetime.datetime:
    return datetime.datetime.fromtimestamp(timestamp, tz=datetime.timezone.utc)


def to_topic(value: int | str) -> str:
    # Indexed event arguments are left-padded to 32 bytes
    if isinstance(value, int):
        return "0x" + format(value, "064x")
    return "0x" + standardize_address(value).removeprefix("0x").zfill(64)
