"""Revenue split configuration for card charges.

The split is read once from ``settings.PAYMENTS_SPLIT`` when the orders app
starts. A disabled split means plain single-recipient charges; an enabled
but invalid one stops the process with ``ImproperlyConfigured``.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

from django.core.exceptions import ImproperlyConfigured


@dataclass(frozen=True)
class SplitConfig:
    """A percentage of every charge routed to a secondary recipient.

    Attributes:
        recipient_id: Gateway id of the secondary recipient.
        percentage: Share of the charge, in (0, 100].
        charge_processing_fee: Recipient pays the processing fee.
        charge_remainder_fee: Recipient absorbs rounding remainders.
        liable: Recipient is liable for chargebacks.
    """

    recipient_id: str
    percentage: Decimal
    charge_processing_fee: bool = False
    charge_remainder_fee: bool = False
    liable: bool = False

    def rules(self) -> List[Dict[str, Any]]:
        """Return the split rules in the gateway's payload format."""
        return [
            {
                "type": "percentage",
                "amount": str(self.percentage),
                "recipient_id": self.recipient_id,
                "options": {
                    "charge_processing_fee": self.charge_processing_fee,
                    "charge_remainder_fee": self.charge_remainder_fee,
                    "liable": self.liable,
                },
            }
        ]


def load_split_config(raw: Optional[Mapping[str, Any]]) -> Optional[SplitConfig]:
    """Build a SplitConfig from the ``PAYMENTS_SPLIT`` settings mapping.

    Args:
        raw: Mapping with ``ENABLED``, ``RECIPIENT_ID``, ``PERCENTAGE`` and
            the optional boolean flags. ``None`` means no split.

    Returns:
        SplitConfig when the split is enabled, otherwise None.

    Raises:
        ImproperlyConfigured: If the split is enabled without a recipient or
            with a percentage outside (0, 100].
    """
    if not raw or not raw.get("ENABLED"):
        return None

    recipient_id = (raw.get("RECIPIENT_ID") or "").strip()
    if not recipient_id:
        raise ImproperlyConfigured("PAYMENTS_SPLIT is enabled but RECIPIENT_ID is empty")

    try:
        percentage = Decimal(str(raw.get("PERCENTAGE", "")))
    except InvalidOperation:
        raise ImproperlyConfigured(f"PAYMENTS_SPLIT PERCENTAGE is not a number: {raw.get('PERCENTAGE')!r}")
    if not percentage.is_finite() or percentage <= 0 or percentage > 100:
        raise ImproperlyConfigured(f"PAYMENTS_SPLIT PERCENTAGE must be in (0, 100], got {percentage}")

    return SplitConfig(
        recipient_id=recipient_id,
        percentage=percentage,
        charge_processing_fee=bool(raw.get("CHARGE_PROCESSING_FEE", False)),
        charge_remainder_fee=bool(raw.get("CHARGE_REMAINDER_FEE", False)),
        liable=bool(raw.get("LIABLE", False)),
    )
