# src/assetledger/runtime/state_invariants.py
from __future__ import annotations

"""Supply/balance invariants.

For every asset in either registry, the recorded supply must equal the sum of
all balance entries keyed by that asset id. Commands preserve this by applying
the actually-moved delta to both sides; this module checks it.
"""

from typing import Iterable, Optional, Protocol, Union

from assetledger.ledger.balances import BalanceLedger
from assetledger.ledger.types import AssetDetails, AssetId, UniqueAssetDetails
from assetledger.runtime.errors import INVARIANT_VIOLATION, ApplyError


class _SupplyRegistry(Protocol):
    @property
    def balances(self) -> BalanceLedger: ...


def _details(registry: _SupplyRegistry, asset_id: AssetId) -> Optional[Union[AssetDetails, UniqueAssetDetails]]:
    getter = getattr(registry, "asset", None) or getattr(registry, "unique_asset")
    return getter(asset_id)


def supply_matches_balances(registry: _SupplyRegistry, asset_id: AssetId) -> bool:
    details = _details(registry, asset_id)
    if details is None:
        # Nonexistent assets hold nothing.
        return registry.balances.total(asset_id) == 0
    return int(details.supply) == registry.balances.total(asset_id)


def ensure_supply_consistent(registry: _SupplyRegistry, asset_ids: Iterable[AssetId]) -> None:
    """Raises ApplyError(invariant_violation) on the first inconsistent asset."""
    for asset_id in asset_ids:
        if not supply_matches_balances(registry, asset_id):
            details = _details(registry, asset_id)
            raise ApplyError(
                INVARIANT_VIOLATION,
                "supply_ne_sum_balances",
                {
                    "asset_id": asset_id,
                    "supply": None if details is None else int(details.supply),
                    "sum_balances": registry.balances.total(asset_id),
                },
            )


__all__ = ["ensure_supply_consistent", "supply_matches_balances"]
