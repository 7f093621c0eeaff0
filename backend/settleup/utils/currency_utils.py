from decimal import Decimal, ROUND_HALF_UP
import hashlib


def to_minor_units(amount: Decimal | str | int, exponent: int = 2) -> int:
    """
    Convert a major-unit amount ("12.34") to integer minor units (1234).

    Only for the boundary: everything past it stays in integers. Values with
    more precision than the currency allows are rounded half up.
    """
    value = Decimal(str(amount)) * (Decimal(10) ** exponent)
    return int(value.to_integral_value(rounding=ROUND_HALF_UP))


def format_minor_units(amount: int, currency: str | None = None, exponent: int = 2) -> str:
    sign = "-" if amount < 0 else ""
    major, minor = divmod(abs(amount), 10 ** exponent)
    text = f"{sign}{major}.{minor:0{exponent}d}" if exponent else f"{sign}{major}"
    return f"{currency} {text}" if currency else text


def compute_shares(amount: int, user_ids: list, seed: str | None = None) -> dict:
    """
    Split amount (minor units) into integer shares that sum EXACTLY to amount.

    If seed is provided, it deterministically shuffles the user order used for
    handing out the remainder, so the extra unit does not always land on the
    same user (e.g. the alphabetically first one) across expenses.

    Args:
        amount: The total amount to split, in minor units.
        user_ids: List of user IDs (strings or UUIDs) to split among.
        seed: Optional string seed (e.g. expense id) for pseudo-random distribution.

    Returns:
        Dictionary mapping user_id to its share in minor units.
    """
    n = len(user_ids)
    if n == 0:
        return {}

    base, extra_count = divmod(amount, n)

    if seed:
        def get_hash(uid):
            return hashlib.md5(f"{seed}:{uid}".encode()).hexdigest()
        sorted_ids = sorted(user_ids, key=get_hash)
    else:
        sorted_ids = sorted(user_ids, key=str)

    # The first `extra_count` users get 1 extra unit
    return {uid: base + (1 if i < extra_count else 0) for i, uid in enumerate(sorted_ids)}
