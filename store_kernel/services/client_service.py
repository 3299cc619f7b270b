"""
ClientService -- customers who may buy on credit.

Responsibility:
    Creates clients and maintains their credit limit.  The outstanding
    balance is never stored; TransactionSelector derives it from
    transactions and payments.

Architecture position:
    Kernel > Services.

Invariants enforced:
    - credit_limit >= 0.  A limit of zero means every sale to the client
      must be paid in full at commit time.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select

from store_kernel.domain.dtos import ClientInfo
from store_kernel.domain.validation import require_storage_amount, require_text
from store_kernel.exceptions import ClientNotFoundError
from store_kernel.logging_config import get_logger
from store_kernel.models.client import Client
from store_kernel.services.base import BaseService

logger = get_logger("services.client")


def _require_credit_limit(value) -> Decimal:
    return require_storage_amount(value, "credit_limit")


class ClientService(BaseService[Client]):
    """Service for client records."""

    @staticmethod
    def _to_dto(client: Client) -> ClientInfo:
        return ClientInfo(
            id=client.id,
            name=client.name,
            contact=client.contact,
            address=client.address,
            credit_limit=client.credit_limit,
            created_at=client.created_at,
        )

    def _get_by_id(self, client_id: int) -> Client:
        client = self.session.get(Client, client_id)
        if client is None:
            raise ClientNotFoundError(client_id)
        return client

    def create_client(
        self,
        name: str,
        contact: str | None = None,
        address: str | None = None,
        credit_limit: Decimal | int | str = Decimal("0"),
    ) -> ClientInfo:
        """
        Create a client.

        Args:
            name: Client name.
            contact: Phone, email or similar, free text.
            address: Postal address, free text.
            credit_limit: Maximum unpaid balance allowed, >= 0.

        Returns:
            Created ClientInfo.
        """
        client = Client(
            name=require_text(name, "name"),
            contact=contact,
            address=address,
            credit_limit=_require_credit_limit(credit_limit),
        )
        self.session.add(client)
        self.session.flush()

        logger.info(
            "client_created",
            extra={"client_id": client.id, "credit_limit": client.credit_limit},
        )
        return self._to_dto(client)

    def get_client(self, client_id: int) -> ClientInfo | None:
        client = self.session.get(Client, client_id)
        return self._to_dto(client) if client else None

    def list_clients(self) -> list[ClientInfo]:
        clients = self.session.execute(select(Client).order_by(Client.id)).scalars()
        return [self._to_dto(c) for c in clients]

    def set_credit_limit(
        self,
        client_id: int,
        credit_limit: Decimal | int | str,
    ) -> ClientInfo:
        """
        Change a client's credit limit.

        Lowering the limit below the current outstanding balance is allowed;
        it only blocks further unpaid sales.

        Raises:
            ClientNotFoundError: If the client does not exist.
        """
        limit = _require_credit_limit(credit_limit)
        client = self._get_by_id(client_id)
        previous = client.credit_limit
        client.credit_limit = limit
        self.session.flush()

        logger.info(
            "credit_limit_changed",
            extra={
                "client_id": client_id,
                "previous_limit": previous,
                "credit_limit": limit,
            },
        )
        return self._to_dto(client)
