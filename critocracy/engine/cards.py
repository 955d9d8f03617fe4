"""
Card effect engine and deck operations.

Deck order is derived from (game seed, deck id, shuffle count), so a saved game
reshuffles exactly the same way after it is reloaded. When a deck runs out its
discard pile is shuffled back in; the card drawn last never comes up first.
"""

import random
from dataclasses import dataclass, field
from typing import Any

from critocracy.engine.definitions import Card, CardLibrary, RoleDefinition
from critocracy.engine.errors import DeckEmpty, NoEffectForRole
from critocracy.engine.state import DeckState, Player


SKIP_TURN_IMMUNITY = "skip_turn"


@dataclass
class ResourceDelta:
    """What applying one card did to one player."""
    player_id: str
    card_id: str
    card_name: str
    explanation: str
    # resource kind -> (old, new)
    changes: dict[str, tuple[int, int]] = field(default_factory=dict)
    skip_turns: int = 0  # turns actually added (0 when the role is immune)

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "card_id": self.card_id,
            "card_name": self.card_name,
            "explanation": self.explanation,
            "changes": {
                kind: {"old": old, "new": new, "change": new - old}
                for kind, (old, new) in self.changes.items()
            },
            "skip_turns": self.skip_turns,
        }


def _shuffled(card_ids: list[str], seed: int, deck_id: str, shuffle_count: int) -> list[str]:
    order = list(card_ids)
    random.Random(f"{seed}:{deck_id}:{shuffle_count}").shuffle(order)
    return order


def new_deck_state(library: CardLibrary, deck_id: str, seed: int) -> DeckState:
    """Fresh, shuffled deck for a game. Unknown deck -> KeyError."""
    card_ids = [c.id for c in library.decks[deck_id]]
    return DeckState(
        deck_id=deck_id,
        remaining=_shuffled(card_ids, seed, deck_id, 0),
        discard=[],
        last_drawn=None,
        shuffle_count=1,
    )


def reshuffle(deck: DeckState, seed: int) -> None:
    """Shuffle the discard pile back into the deck; the last drawn card goes to the bottom."""
    order = _shuffled(deck.discard, seed, deck.deck_id, deck.shuffle_count)
    if len(order) > 1 and order[0] == deck.last_drawn:
        order.append(order.pop(0))
    deck.remaining = order
    deck.discard = []
    deck.shuffle_count += 1


def draw(deck: DeckState, library: CardLibrary, seed: int, reshuffle_when_empty: bool = True) -> Card:
    """
    Pop the top card of a deck (mutates deck) and return its definition.
    No card repeats until the whole deck has been drawn.
    Raises DeckEmpty when nothing is left and reshuffling is off.
    """
    if not deck.remaining:
        if not reshuffle_when_empty or not deck.discard:
            raise DeckEmpty(f"Deck '{deck.deck_id}' is exhausted")
        reshuffle(deck, seed)
    card_id = deck.remaining.pop(0)
    deck.discard.append(card_id)
    deck.last_drawn = card_id
    return library.card(card_id)


def apply_card(
    player: Player,
    card: Card,
    role_defs: dict[str, RoleDefinition] | None = None,
) -> ResourceDelta:
    """
    Apply the effect of a card for the player's role (mutates player).
    Only the resource kinds named by the effect change; there is no floor or cap.
    Applying the same card twice applies its delta twice.
    """
    effect = card.effects.get(player.role) if player.role else None
    if effect is None:
        raise NoEffectForRole(f"Card '{card.name}' has no effect for role {player.role!r}")

    changes: dict[str, tuple[int, int]] = {}
    for kind, amount in effect.changes.items():
        old = player.resources.get(kind, 0)
        player.resources[kind] = old + amount
        changes[kind] = (old, old + amount)

    skipped = 0
    if effect.skip_turns:
        role_def = (role_defs or {}).get(player.role)
        immune = role_def is not None and SKIP_TURN_IMMUNITY in role_def.immunities
        if not immune:
            player.skip_turns += effect.skip_turns
            skipped = effect.skip_turns

    return ResourceDelta(
        player_id=player.id,
        card_id=card.id,
        card_name=card.name,
        explanation=effect.explanation,
        changes=changes,
        skip_turns=skipped,
    )
