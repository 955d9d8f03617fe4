"""
Tests for card content, role-keyed effects and deck draws.
"""

import json
import shutil

import pytest

from critocracy.engine.cards import apply_card, draw, new_deck_state, reshuffle
from critocracy.engine.definitions import SETUPS_DIR, cards_from_dict
from critocracy.engine.errors import ConfigurationError, DeckEmpty, NoEffectForRole
from critocracy.engine.utils import load_game_definitions

from conftest import make_player

RECLAMATION = "The Reclamation of Historical Spaces"


class TestCardLibrary:
    """The classic card content."""

    def test_deck_sizes(self, library):
        sizes = {deck_id: len(cards) for deck_id, cards in library.decks.items()}
        assert sizes == {"end_of_turn": 25, "purple": 9, "blue": 8, "cyan": 7, "pink": 11}

    def test_every_card_covers_every_role(self, library, roles):
        for cards in library.decks.values():
            for card in cards:
                assert set(card.effects) == set(roles)

    def test_lookup(self, library):
        card = library.find_by_name(RECLAMATION)
        assert card.id == "end_of_turn-00"
        assert library.card("end_of_turn-00") is card
        with pytest.raises(KeyError):
            library.card("purple-99")
        with pytest.raises(KeyError):
            library.find_by_name(RECLAMATION, deck_id="purple")


class TestApplyCard:
    """Role-keyed resource deltas."""

    def test_role_specific_effect(self, library, roles):
        player = make_player(role="Colonialist")
        delta = apply_card(player, library.find_by_name(RECLAMATION), roles)
        assert player.resources == {"money": 9, "knowledge": -3, "influence": 4}
        assert delta.changes == {"money": (14, 9), "knowledge": (0, -3), "influence": (8, 4)}
        assert delta.explanation

    def test_other_role_gets_its_own_effect(self, library, roles):
        player = make_player(role="Historian", resources={"money": 8, "knowledge": 14, "influence": 0})
        apply_card(player, library.find_by_name(RECLAMATION), roles)
        assert player.resources == {"money": 7, "knowledge": 19, "influence": 1}

    def test_applying_twice_applies_twice(self, library, roles):
        player = make_player(role="Colonialist")
        card = library.find_by_name(RECLAMATION)
        apply_card(player, card, roles)
        apply_card(player, card, roles)
        assert player.resources == {"money": 4, "knowledge": -6, "influence": 0}

    def test_only_named_resources_change(self, library, roles):
        player = make_player(role="Artist", resources={"money": 0, "knowledge": 8, "influence": 14})
        delta = apply_card(player, library.find_by_name("Divide and Conquer"), roles)
        assert player.resources == {"money": 0, "knowledge": 3, "influence": 14}
        assert list(delta.changes) == ["knowledge"]

    def test_delta_to_dict(self, library, roles):
        player = make_player(role="Colonialist")
        data = apply_card(player, library.find_by_name(RECLAMATION), roles).to_dict()
        assert data["card_name"] == RECLAMATION
        assert data["changes"]["money"] == {"old": 14, "new": 9, "change": -5}
        assert data["skip_turns"] == 0

    def test_skip_turns_added(self, library, roles):
        player = make_player(role="Colonialist")
        delta = apply_card(player, library.find_by_name("Commodification of Labor"), roles)
        assert player.skip_turns == 1
        assert delta.skip_turns == 1
        assert player.resources["money"] == 21

    def test_skip_turns_accumulate(self, library, roles):
        player = make_player(role="Politician", skip_turns=1)
        apply_card(player, library.find_by_name("The Weight of History"), roles)
        assert player.skip_turns == 2

    def test_entrepreneur_is_immune_to_skips(self, library, roles):
        player = make_player(role="Entrepreneur", resources={"money": 14, "knowledge": 8, "influence": 0})
        delta = apply_card(player, library.find_by_name("Commodification of Labor"), roles)
        assert player.skip_turns == 0
        assert delta.skip_turns == 0
        assert player.resources["money"] == 21

    def test_missing_effect_for_role(self, library, roles):
        player = make_player(role="Wizard")
        with pytest.raises(NoEffectForRole):
            apply_card(player, library.find_by_name(RECLAMATION), roles)
        assert player.resources == {"money": 14, "knowledge": 0, "influence": 8}


class TestDecks:
    """Draw order, exhaustion and reshuffling."""

    def test_new_deck_holds_every_card(self, library):
        deck = new_deck_state(library, "purple", seed=3)
        assert sorted(deck.remaining) == sorted(c.id for c in library.decks["purple"])
        assert deck.discard == []
        assert deck.last_drawn is None

    def test_same_seed_same_order(self, library):
        first = new_deck_state(library, "pink", seed=42)
        second = new_deck_state(library, "pink", seed=42)
        assert first.remaining == second.remaining

    def test_no_repeats_until_exhausted(self, library):
        deck = new_deck_state(library, "purple", seed=3)
        drawn = [draw(deck, library, seed=3).id for _ in range(9)]
        assert len(set(drawn)) == 9
        assert deck.remaining == []
        assert deck.discard == drawn
        assert deck.last_drawn == drawn[-1]

    def test_reshuffle_on_exhaustion(self, library):
        deck = new_deck_state(library, "cyan", seed=5)
        for _ in range(7):
            draw(deck, library, seed=5)
        shuffles = deck.shuffle_count
        card = draw(deck, library, seed=5)
        assert deck.shuffle_count == shuffles + 1
        assert len(deck.remaining) == 6
        assert deck.discard == [card.id]

    def test_last_card_never_comes_up_first_after_reshuffle(self, library):
        for seed in range(40):
            deck = new_deck_state(library, "cyan", seed=seed)
            for _ in range(7):
                last = draw(deck, library, seed=seed)
            assert draw(deck, library, seed=seed).id != last.id

    def test_reshuffle_moves_the_last_card_down(self, library):
        deck = new_deck_state(library, "blue", seed=9)
        for _ in range(8):
            draw(deck, library, seed=9)
        reshuffle(deck, seed=9)
        assert deck.remaining[0] != deck.last_drawn
        assert deck.discard == []
        assert len(deck.remaining) == 8

    def test_empty_deck_without_reshuffle(self, library):
        deck = new_deck_state(library, "cyan", seed=5)
        for _ in range(7):
            draw(deck, library, seed=5, reshuffle_when_empty=False)
        with pytest.raises(DeckEmpty):
            draw(deck, library, seed=5, reshuffle_when_empty=False)


class TestCardContentValidation:
    """Malformed card content is rejected at load time."""

    ROLES = ["Historian", "Artist"]

    def test_all_roles_shorthand(self):
        library = cards_from_dict(
            {"red": [{"name": "Windfall", "all_roles": {"changes": {"money": 2}}}]},
            self.ROLES,
        )
        card = library.card("red-00")
        assert set(card.effects) == set(self.ROLES)
        assert card.effects["Artist"].changes == {"money": 2}

    def test_missing_role_effect(self):
        data = {"red": [{"name": "Windfall", "effects": {"Historian": {"changes": {"money": 2}}}}]}
        with pytest.raises(ConfigurationError, match="no effect for roles"):
            cards_from_dict(data, self.ROLES)

    def test_unknown_role(self):
        effects = {role: {"changes": {}} for role in self.ROLES + ["Wizard"]}
        with pytest.raises(ConfigurationError, match="unknown roles"):
            cards_from_dict({"red": [{"name": "Windfall", "effects": effects}]}, self.ROLES)

    def test_unknown_resource(self):
        data = {"red": [{"name": "Windfall", "all_roles": {"changes": {"gold": 2}}}]}
        with pytest.raises(ConfigurationError, match="unknown resources"):
            cards_from_dict(data, self.ROLES)

    def test_non_integer_amount(self):
        data = {"red": [{"name": "Windfall", "all_roles": {"changes": {"money": "lots"}}}]}
        with pytest.raises(ConfigurationError):
            cards_from_dict(data, self.ROLES)

    def test_empty_deck(self):
        with pytest.raises(ConfigurationError):
            cards_from_dict({"red": []}, self.ROLES)

    def test_missing_deck_for_draw_spaces(self, tmp_path):
        setup_dir = tmp_path / "classic"
        shutil.copytree(SETUPS_DIR / "classic", setup_dir)
        cards_path = setup_dir / "cards.json"
        cards = json.loads(cards_path.read_text(encoding="utf-8"))
        del cards["pink"]
        cards_path.write_text(json.dumps(cards), encoding="utf-8")

        with pytest.raises(ConfigurationError, match="pink"):
            load_game_definitions("classic", data_dir=setup_dir)

    def test_missing_end_of_turn_deck(self, tmp_path):
        setup_dir = tmp_path / "classic"
        shutil.copytree(SETUPS_DIR / "classic", setup_dir)
        cards_path = setup_dir / "cards.json"
        cards = json.loads(cards_path.read_text(encoding="utf-8"))
        del cards["end_of_turn"]
        cards_path.write_text(json.dumps(cards), encoding="utf-8")

        with pytest.raises(ConfigurationError, match="end_of_turn"):
            load_game_definitions("classic", data_dir=setup_dir)
