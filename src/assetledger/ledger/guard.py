from __future__ import annotations

from typing import Optional, Type

from assetledger.ledger.types import AccountId, AssetDetails, AssetId
from assetledger.runtime.errors import NO_PERMISSION, UNKNOWN, ApplyError


def ensure_is_owner(
    details: Optional[AssetDetails],
    account: AccountId,
    *,
    asset_id: Optional[AssetId] = None,
    error_cls: Type[ApplyError] = ApplyError,
) -> AssetDetails:
    """Gate privileged fungible operations on the recorded owner.

    Returns the details so callers can keep working with them.
    """
    if details is None:
        raise error_cls(UNKNOWN, "asset_not_found", {"asset_id": asset_id})
    if details.owner != account:
        raise error_cls(NO_PERMISSION, "caller_not_owner", {"asset_id": asset_id, "caller": account})
    return details
