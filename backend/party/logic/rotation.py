"""Answerer rotation over connected players in join order."""

import random

from party.logic.room import Room, connected_players


def pick_first_answerer(room: Room, rng: random.Random | None = None) -> str | None:
    """Pick the round-1 answerer uniformly among connected players."""
    candidates = connected_players(room)
    if not candidates:
        return None
    chooser = rng or random
    return chooser.choice(candidates).id


def next_answerer(room: Room, previous_id: str) -> str | None:
    """Return the next connected player after ``previous_id`` in join order.

    The scan anchors on the previous answerer's position in ``room.players``
    whether or not they are still connected, then wraps around. The previous
    answerer is picked again only when nobody else is connected. An unknown
    ``previous_id`` falls back to the first connected player.
    """
    players = room.players
    start = next((i for i, p in enumerate(players) if p.id == previous_id), None)
    if start is None:
        first = next((p for p in players if p.is_connected), None)
        return first.id if first is not None else None

    count = len(players)
    for offset in range(1, count + 1):
        candidate = players[(start + offset) % count]
        if candidate.is_connected:
            return candidate.id
    return None
