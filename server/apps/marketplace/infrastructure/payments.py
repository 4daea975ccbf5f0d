"""Payment gateway confirmation payloads.

The gateway settles payments on its own and passes the result along as
a JSON document (the ``X-Payment-Response`` header). It is stored on the
purchase transaction as is; nothing here verifies it.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Self, final

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True, slots=True)
class PaymentConfirmation:
    """Confirmation of a payment reported by the gateway."""

    transaction: str
    network: str
    payer: str
    success: bool
    raw: str = ''

    @classmethod
    def from_header(cls, raw: str | None) -> Self | None:
        """Parse the gateway's JSON payload.

        Args:
            raw: Header value, may be missing.

        Returns:
            Parsed confirmation, None if the header is missing or malformed.
        """
        if not raw:
            return None

        try:
            payload = json.loads(raw)
        except ValueError:
            logger.warning('Ignoring malformed payment response: %.200s', raw)
            return None

        if not isinstance(payload, dict):
            logger.warning('Ignoring payment response that is not an object')
            return None

        return cls(
            transaction=str(payload.get('transaction') or ''),
            network=str(payload.get('network') or ''),
            payer=str(payload.get('payer') or ''),
            success=bool(payload.get('success', False)),
            raw=raw,
        )

    def as_metadata(self) -> dict[str, Any]:
        """Transaction metadata recorded for this confirmation."""
        return {
            'blockchain_transaction': self.transaction,
            'network': self.network,
            'payer': self.payer,
            'success': self.success,
            'payment_response_raw': self.raw,
        }
