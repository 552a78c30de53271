"""
Repository for shop records.

Rows are keyed by their unique `domain` and returned as plain dicts matching
the `shops` table columns. The offline access token is sealed through a
`TokenCipher` before it is written; its plaintext never reaches the database
or the logs.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from blossom.crypto import TokenCipher, get_token_cipher
from blossom.db import get_shops_table
from blossom.logging import get_logger

logger = get_logger(__name__)

# Dialects with INSERT ... ON CONFLICT support.
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

# Columns an upsert may set on insert but never overwrite afterwards.
_IMMUTABLE_COLUMNS = frozenset({"id", "domain", "created_at"})


class OfflineTokenMissingError(LookupError):
    """Raised when a shop has no stored offline access token."""

    def __init__(self, domain: str):
        self.domain = domain
        super().__init__(f"offline_token_missing: {domain}")


class ShopRepository:
    """Repository for shop database operations."""

    def __init__(self, session: Session, cipher: Optional[TokenCipher] = None):
        self.session = session
        self.shops_table = get_shops_table(session.get_bind())
        self._cipher = cipher

    @property
    def cipher(self) -> TokenCipher:
        # Resolved on first use so a missing key only fails token operations.
        if self._cipher is None:
            self._cipher = get_token_cipher()
        return self._cipher

    def find_by_domain(self, domain: str) -> Optional[dict]:
        """
        Get a shop by its domain.

        Returns the shop as a dict, or None if not found.
        """
        stmt = select(self.shops_table).where(self.shops_table.c.domain == domain)
        result = self.session.execute(stmt).first()
        if result is None:
            return None
        return dict(result._mapping)

    def upsert_by_domain(self, domain: str, data: Mapping[str, Any]) -> dict:
        """
        Insert a shop with `domain` and `data`, or merge `data` into the
        existing row for that domain.

        Runs as a single INSERT ... ON CONFLICT (domain) DO UPDATE statement
        and returns the resulting row.
        """
        dialect = self.session.get_bind().dialect.name
        try:
            insert = _UPSERT_INSERTS[dialect]
        except KeyError:
            raise NotImplementedError(f"Upsert is not supported for dialect {dialect!r}") from None

        now = datetime.now(timezone.utc)
        insert_values = {
            **data,
            "id": str(uuid4()),
            "domain": domain,
            "created_at": now,
            "updated_at": now,
        }
        update_values = {k: v for k, v in data.items() if k not in _IMMUTABLE_COLUMNS}
        update_values["updated_at"] = now

        stmt = insert(self.shops_table).values(**insert_values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[self.shops_table.c.domain],
            set_=update_values,
        )
        self.session.execute(stmt)
        self.session.flush()

        logger.info("shop_upserted", shop_domain=domain, fields=sorted(data))

        return self.find_by_domain(domain)  # type: ignore[return-value]

    def save_offline_token(self, domain: str, token: str) -> dict:
        """
        Seal `token` and store it as the shop's `token_offline`.

        Cipher errors propagate before anything is written.
        """
        sealed = self.cipher.seal(token)
        shop = self.upsert_by_domain(domain, {"token_offline": sealed})
        logger.info("offline_token_saved", shop_domain=domain)
        return shop

    def get_offline_token(self, domain: str) -> str:
        """
        Return the shop's offline access token in plaintext.

        Raises OfflineTokenMissingError when the shop or its token is absent.
        Keep the returned value in memory only.
        """
        shop = self.find_by_domain(domain)
        if shop is None or not shop.get("token_offline"):
            raise OfflineTokenMissingError(domain)
        return self.cipher.open(shop["token_offline"])
