"""Liability repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from ...models.liability import Liability


class LiabilityRepository(Protocol):
    """Repository for managing liability entities."""

    def get_by_id(self, liability_id: int, *, user_id: int) -> Optional[Liability]:
        """Retrieve a liability by ID."""
        ...

    def list_all(self, *, user_id: int) -> list[Liability]:
        """List all liabilities."""
        ...

    def create(self, liability: Liability, *, user_id: int) -> Liability:
        """Create a new liability."""
        ...

    def update(self, liability: Liability, *, user_id: int) -> Liability:
        """Update an existing liability."""
        ...

    def delete(self, liability_id: int, *, user_id: int) -> bool:
        """Delete a liability by ID."""
        ...
