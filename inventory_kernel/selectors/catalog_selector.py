"""Tenant-scoped existence checks for catalog references."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from inventory_kernel.models.catalog import Client, ProductVariant
from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.tenancy import TenantScope


class CatalogSelector(BaseSelector[ProductVariant]):
    def existing_variant_ids(
        self,
        scope: TenantScope,
        product_variant_ids: Iterable[UUID],
    ) -> set[UUID]:
        """Subset of the given ids that exist and belong to the tenant."""
        ids = list(dict.fromkeys(product_variant_ids))
        if not ids:
            return set()
        rows = self.session.execute(
            scope.variant_ids().where(ProductVariant.id.in_(ids))
        ).scalars()
        return set(rows)

    def missing_variant_ids(
        self,
        scope: TenantScope,
        product_variant_ids: Iterable[UUID],
    ) -> list[UUID]:
        """Ids not owned by the tenant, de-duplicated, in request order."""
        ids = list(dict.fromkeys(product_variant_ids))
        existing = self.existing_variant_ids(scope, ids)
        return [vid for vid in ids if vid not in existing]

    def client_exists(self, scope: TenantScope, client_id: UUID) -> bool:
        found = self.session.execute(
            scope.clients().where(Client.id == client_id)
        ).scalar_one_or_none()
        return found is not None
