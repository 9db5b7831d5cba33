"""Identifier factory for engine entities."""

from __future__ import annotations

from faker import Faker


class IdFactory:
    """Produce prefixed unique ids such as ``plan_<uuid4>``.

    Uses Faker's ``uuid4`` provider so a seeded factory yields a
    reproducible id sequence.

    Parameters
    ----------
    seed : int | None
        Random seed for reproducibility.
    """

    def __init__(self, seed: int | None = None) -> None:
        self.fake = Faker()
        if seed is not None:
            self.fake.seed_instance(seed)

    def new_id(self, prefix: str) -> str:
        """Return a fresh id with the given prefix."""
        return f"{prefix}_{self.fake.uuid4()}"
