import logging
import math
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Protocol

import pandas as pd

from ..config import AssetAllocation, AssetProfile, RiskClass, WEIGHT_TOLERANCE
from ..errors import NotFoundError, ReferenceUnavailableError, ValidationError

logger = logging.getLogger(__name__)


class AssetReference(Protocol):
    def get(self, asset_id: str) -> AssetProfile: ...


class AssetCatalog:
    """In-memory asset reference table.

    The engine only reads from it. Callers that refresh the table while runs are
    in flight should hand each run a ``snapshot()``.
    """

    def __init__(self, profiles: Iterable[AssetProfile] = ()):
        self._profiles: Dict[str, AssetProfile] = {p.asset_id: p for p in profiles}

    def get(self, asset_id: str) -> AssetProfile:
        try:
            return self._profiles[asset_id]
        except KeyError:
            raise NotFoundError(asset_id) from None

    def __contains__(self, asset_id) -> bool:
        return asset_id in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)

    def ids(self) -> List[str]:
        return list(self._profiles)

    def snapshot(self) -> "AssetCatalog":
        return AssetCatalog(self._profiles.values())

    @classmethod
    def from_frame(cls, df: pd.DataFrame, return_column: str = "expected_annual_return") -> "AssetCatalog":
        """Build a catalog from a frame with asset_id, risk_class and a return column.

        ``name`` and ``beta`` columns are optional.
        """
        missing = [c for c in ("asset_id", "risk_class", return_column) if c not in df.columns]
        if missing:
            raise ValueError(f"Asset frame missing columns: {missing}")
        profiles = []
        for row in df.to_dict("records"):
            beta = row.get("beta")
            profiles.append(AssetProfile(
                asset_id=str(row["asset_id"]),
                expected_annual_return=float(row[return_column]),
                risk_class=RiskClass(str(row["risk_class"]).upper()),
                name=str(row.get("name") or ""),
                beta=1.0 if beta is None or pd.isna(beta) else float(beta),
            ))
        return cls(profiles)

    @classmethod
    def from_csv(cls, path, return_column: str = "expected_annual_return") -> "AssetCatalog":
        path = Path(path)
        try:
            df = pd.read_csv(path)
        except OSError as e:
            raise ReferenceUnavailableError(f"Could not read asset catalog {path}: {e}") from e
        catalog = cls.from_frame(df, return_column=return_column)
        logger.info("Loaded %d assets from %s", len(catalog), path)
        return catalog


def check_weights(weights: Mapping[str, float]):
    """Reject empty, negative or non-100 allocations. No normalization."""
    if not weights:
        raise ValidationError("At least one asset must be allocated")
    bad = [k for k, w in weights.items() if not math.isfinite(w) or w < 0]
    if bad:
        raise ValidationError(f"Allocation weights must be finite and non-negative: {bad}")
    total = float(sum(weights.values()))
    if not abs(total - 100.0) <= WEIGHT_TOLERANCE + 1e-9:
        raise ValidationError(f"Allocation weights must sum to 100, got {total:.4f}")


def resolve_allocations(weights: Mapping[str, float], catalog: AssetReference) -> List[AssetAllocation]:
    """Validate weights and join them with the reference table, in input order."""
    check_weights(weights)
    allocations = []
    for asset_id, weight in weights.items():
        profile = catalog.get(asset_id)
        allocations.append(AssetAllocation(
            asset_id=asset_id,
            weight=float(weight),
            risk_class=profile.risk_class,
            expected_annual_return=profile.expected_annual_return,
        ))
    return allocations
