"""
Fixed-asset register service.

Accumulated depreciation is changed with a single capped UPDATE
so it can never pass the asset's cost, even when two depreciation
postings land at once.
"""

import logging
from datetime import date

from sqlalchemy import case, update
from sqlalchemy.orm import Session

from posting_engine.errors import NotFoundError, ValidationError
from posting_engine.models.enums import AssetStatus, DepreciationMethod
from posting_engine.models.fixed_asset import FixedAsset
from posting_engine.services.vat_calculator import ZERO, to_money

logger = logging.getLogger(__name__)

DEFAULT_USEFUL_LIFE_YEARS = 5


class AssetService:

    def __init__(self, db: Session):
        self.db = db

    def get_asset(self, company_id: int, asset_id: int) -> FixedAsset:
        asset = self.db.get(FixedAsset, asset_id)
        if not asset or asset.company_id != company_id:
            raise NotFoundError(f"Fixed asset {asset_id} not found")
        return asset

    def register_acquisition(
        self,
        company_id: int,
        description: str,
        cost,
        purchase_date: date,
        useful_life_years: int | None,
        method: DepreciationMethod,
        asset_account_id: int | None,
        existing: FixedAsset | None = None,
    ) -> FixedAsset:
        """
        Create the asset record for a purchase, or refresh the one
        an edited purchase created. Cost is always net of VAT.
        """
        asset = existing or FixedAsset(company_id=company_id)
        asset.description = description
        asset.cost = to_money(cost)
        asset.purchase_date = purchase_date
        asset.useful_life_years = (
            useful_life_years
            or (existing.useful_life_years if existing else DEFAULT_USEFUL_LIFE_YEARS)
        )
        asset.depreciation_method = method
        asset.asset_account_id = asset_account_id
        if existing is None:
            asset.accumulated_depreciation = ZERO
            self.db.add(asset)
        if asset.status in (None, AssetStatus.CANCELLED):
            asset.status = AssetStatus.ACTIVE
        self.db.flush()
        return asset

    def add_depreciation(self, asset_id: int, amount) -> None:
        amount = to_money(amount)
        raised = FixedAsset.accumulated_depreciation + amount
        self.db.execute(
            update(FixedAsset)
            .where(FixedAsset.id == asset_id)
            .values(accumulated_depreciation=case(
                (raised > FixedAsset.cost, FixedAsset.cost),
                else_=raised,
            ))
            .execution_options(synchronize_session="fetch")
        )

    def reverse_depreciation(self, asset_id: int, amount) -> None:
        amount = to_money(amount)
        lowered = FixedAsset.accumulated_depreciation - amount
        self.db.execute(
            update(FixedAsset)
            .where(FixedAsset.id == asset_id)
            .values(accumulated_depreciation=case(
                (lowered < ZERO, ZERO),
                else_=lowered,
            ))
            .execution_options(synchronize_session="fetch")
        )

    def mark_disposed(self, asset: FixedAsset, disposal_date: date) -> None:
        asset.status = AssetStatus.DISPOSED
        asset.disposal_date = disposal_date
        self.db.flush()
        logger.info("Fixed asset %s disposed on %s", asset.id, disposal_date)

    def reinstate(self, asset: FixedAsset) -> None:
        asset.status = AssetStatus.ACTIVE
        asset.disposal_date = None
        self.db.flush()

    def check_acquisition_reversible(self, asset: FixedAsset) -> None:
        if asset.status == AssetStatus.DISPOSED:
            raise ValidationError(
                f"Fixed asset '{asset.description}' has been disposed; "
                f"reverse the disposal first"
            )
        if to_money(asset.accumulated_depreciation) > 0:
            raise ValidationError(
                f"Fixed asset '{asset.description}' has been depreciated; "
                f"reverse its depreciation first"
            )

    def cancel(self, asset: FixedAsset) -> None:
        """Take an asset off the active register when its purchase is reversed."""
        asset.status = AssetStatus.CANCELLED
        self.db.flush()
        logger.info("Fixed asset %s cancelled", asset.id)
