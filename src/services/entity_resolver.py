"""
Find-or-create resolution of the entities a bill group references.

Policy:
- Customer and Vendor are required. When missing they are created if
  auto-create is on, otherwise EntityNotFoundError sends the group to review.
- Sub-customers (projects) are always created under the top customer.
- Department and Class are optional and silently omitted when not found.

Results are cached per batch so an entity created for one group is reused
by later groups instead of being looked up (and possibly duplicated) again.
"""

from typing import Dict, Optional
from loguru import logger
from ..core.errors import EntityNotFoundError
from ..models.accounting import ResolvedEntity
from ..models.rows import ProcessingSettings
from .accounting.gateway_base import AccountingGateway


class EntityResolver:
    def __init__(self, gateway: AccountingGateway, settings: ProcessingSettings):
        self.gateway = gateway
        self.settings = settings
        self.reset()

    def reset(self) -> None:
        """Drop all cached lookups (called at the start of every batch)."""
        # Customers and sub-customers share one DisplayName namespace in QBO
        self._customers: Dict[str, ResolvedEntity] = {}
        self._vendors: Dict[str, ResolvedEntity] = {}
        self._departments: Dict[str, Optional[ResolvedEntity]] = {}
        self._classes: Dict[str, Optional[ResolvedEntity]] = {}
        self._expense_account_id: Optional[str] = None

    async def resolve_customer(self, name: str) -> ResolvedEntity:
        name = name.strip()
        cached = self._customers.get(name)
        if cached is not None:
            return cached

        customer = await self.gateway.find_customer_by_name(name)
        if customer is None:
            if not self.settings.auto_create:
                raise EntityNotFoundError("Customer", name)
            customer = await self.gateway.create_customer(name)
            logger.info("Customer created", customer=name, customer_id=customer.id)

        self._customers[name] = customer
        return customer

    async def resolve_sub_customer(self, name: str, parent: ResolvedEntity) -> ResolvedEntity:
        name = name.strip()
        cached = self._customers.get(name)
        if cached is not None:
            return cached

        sub_customer = await self.gateway.find_customer_by_name(name)
        if sub_customer is None:
            sub_customer = await self.gateway.create_customer(name, parent.id)
            logger.info("Project created", project=name, parent_id=parent.id, project_id=sub_customer.id)

        self._customers[name] = sub_customer
        return sub_customer

    async def resolve_vendor(self, name: str) -> ResolvedEntity:
        name = name.strip()
        cached = self._vendors.get(name)
        if cached is not None:
            return cached

        vendor = await self.gateway.find_vendor_by_name(name)
        if vendor is None:
            if not self.settings.auto_create:
                raise EntityNotFoundError("Vendor", name)
            vendor = await self.gateway.create_vendor(name)
            logger.info("Vendor created", vendor=name, vendor_id=vendor.id)

        self._vendors[name] = vendor
        return vendor

    async def resolve_department(self, name: str) -> Optional[ResolvedEntity]:
        name = name.strip()
        if not name:
            return None
        if name not in self._departments:
            self._departments[name] = await self.gateway.find_department_by_name(name)
            if self._departments[name] is None:
                logger.debug("Department not found, omitting", department=name)
        return self._departments[name]

    async def resolve_class(self, name: str) -> Optional[ResolvedEntity]:
        name = name.strip()
        if not name:
            return None
        if name not in self._classes:
            self._classes[name] = await self.gateway.find_class_by_name(name)
            if self._classes[name] is None:
                logger.debug("Class not found, omitting", class_name=name)
        return self._classes[name]

    async def expense_account_id(self) -> str:
        if self._expense_account_id is None:
            self._expense_account_id = await self.gateway.get_default_expense_account()
        return self._expense_account_id
