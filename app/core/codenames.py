"""Codename generation for newly registered gadgets.

Every gadget gets a memorable field name such as "The Silent Hawk". The word
lists are small, so callers are expected to retry on collisions (see
``app.crud.gadgets.create_gadget``).
"""

from __future__ import annotations

import random

__all__ = ["ADJECTIVES", "NOUNS", "generate_codename"]

ADJECTIVES = ("Silent", "Phantom", "Shadow", "Midnight", "Crystal", "Golden", "Iron", "Sonic")
NOUNS = ("Hawk", "Serpent", "Dragon", "Phoenix", "Wolf", "Eagle", "Tiger", "Ghost")


def generate_codename(rng: random.Random | None = None) -> str:
    """Return a random ``The <Adjective> <Noun>`` codename."""

    chooser = rng or random
    return f"The {chooser.choice(ADJECTIVES)} {chooser.choice(NOUNS)}"
