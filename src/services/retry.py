"""
Bounded exponential backoff for rate-limited accounting calls.

Only faults carrying the rate-limit code are retried. The wait before
retry ``n`` (0-based) is ``base_delay_ms * 2**n``, i.e. 1000/2000/4000ms
with the defaults. After the last retry the error propagates unchanged.
"""

import asyncio
from datetime import date
from functools import wraps
from typing import Awaitable, Callable, Optional, TypeVar
from loguru import logger
from ..core.config import settings
from ..core.errors import fault_code
from ..models.accounting import ResolvedEntity
from ..models.documents import Bill
from ..models.results import UploadedFile
from .accounting.gateway_base import AccountingGateway, AttachableEntityType

T = TypeVar("T")


class RetryExecutor:
    def __init__(
        self,
        max_retries: Optional[int] = None,
        base_delay_ms: Optional[int] = None,
        rate_limit_code: Optional[str] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.max_retries = settings.retry_max_retries if max_retries is None else max_retries
        self.base_delay_ms = settings.retry_base_delay_ms if base_delay_ms is None else base_delay_ms
        self.rate_limit_code = rate_limit_code or settings.retry_rate_limit_code
        self._sleep = sleep or asyncio.sleep

    def delay_ms(self, retry_count: int) -> int:
        return self.base_delay_ms * 2 ** retry_count

    def is_retryable(self, error: BaseException) -> bool:
        return fault_code(error) == self.rate_limit_code

    async def run(self, operation: Callable[[], Awaitable[T]], description: str = "accounting call") -> T:
        """
        Await ``operation()``, retrying on rate-limit faults.

        Args:
            operation: Zero-argument callable returning a fresh awaitable per attempt
            description: Label used in retry log lines

        Returns:
            The operation's result
        """
        retry_count = 0
        while True:
            try:
                return await operation()
            except Exception as e:
                if not self.is_retryable(e) or retry_count >= self.max_retries:
                    raise
                delay = self.delay_ms(retry_count)
                logger.warning(
                    "Rate limited, retrying",
                    operation=description,
                    delay_ms=delay,
                    attempt=retry_count + 1,
                    max_retries=self.max_retries,
                )
                await self._sleep(delay / 1000)
                retry_count += 1

    def wrap(self, func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        """Decorate an async callable so every call goes through ``run``."""

        @wraps(func)
        async def wrapper(*args, **kwargs):
            return await self.run(lambda: func(*args, **kwargs), description=func.__name__)

        return wrapper


class RetryingGateway(AccountingGateway):
    """Applies one RetryExecutor uniformly to every gateway operation."""

    def __init__(self, inner: AccountingGateway, executor: Optional[RetryExecutor] = None):
        self.inner = inner
        self.executor = executor or RetryExecutor()

    def _call(self, name: str, *args, **kwargs):
        return self.executor.wrap(getattr(self.inner, name))(*args, **kwargs)

    async def find_customer_by_name(self, display_name: str) -> Optional[ResolvedEntity]:
        return await self._call("find_customer_by_name", display_name)

    async def create_customer(self, display_name: str, parent_id: Optional[str] = None) -> ResolvedEntity:
        return await self._call("create_customer", display_name, parent_id)

    async def find_vendor_by_name(self, display_name: str) -> Optional[ResolvedEntity]:
        return await self._call("find_vendor_by_name", display_name)

    async def create_vendor(self, display_name: str) -> ResolvedEntity:
        return await self._call("create_vendor", display_name)

    async def find_department_by_name(self, name: str) -> Optional[ResolvedEntity]:
        return await self._call("find_department_by_name", name)

    async def find_class_by_name(self, name: str) -> Optional[ResolvedEntity]:
        return await self._call("find_class_by_name", name)

    async def get_default_expense_account(self) -> str:
        return await self._call("get_default_expense_account")

    async def create_bill(self, bill: Bill) -> ResolvedEntity:
        return await self._call("create_bill", bill)

    async def create_invoice_from_billable_expenses(
        self,
        customer_id: str,
        invoice_date: date,
        po_number: Optional[str] = None,
        point_of_contact: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> ResolvedEntity:
        return await self._call(
            "create_invoice_from_billable_expenses",
            customer_id,
            invoice_date,
            po_number,
            point_of_contact,
            currency,
        )

    async def upload_attachment(
        self, file: UploadedFile, entity_type: AttachableEntityType, entity_id: str
    ) -> ResolvedEntity:
        return await self._call("upload_attachment", file, entity_type, entity_id)

    async def aclose(self) -> None:
        await self.inner.aclose()
