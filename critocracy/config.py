"""
Single place for default game/setup configuration.
Change DEFAULT_SETUP_ID to switch which setup is used when creating a new game (when no setup_id is provided).
Per-setup overrides live in data/setups/<id>/manifest.json; per-game overrides in GameConfig.
"""
# Setup id from data/setups/<id>/ (e.g. "classic"). This is the default for new games.
DEFAULT_SETUP_ID = "classic"

# Movement die
DEFAULT_DIE_SIDES = 6

# None = play until every player has reached FINISH
DEFAULT_MAX_TURNS = None

# Finished players are dropped from the rotation (they keep their place for rankings)
SKIP_FINISHED_PLAYERS = True

# Empty decks are reshuffled from their discard pile; False makes an empty draw a DeckEmpty error
RESHUFFLE_EXHAUSTED_DECKS = True

# Draw an end-of-turn card when a turn ends normally
DRAW_END_OF_TURN_CARDS = True

# "random" (seeded shuffle) or "seated" (order players were added)
DEFAULT_TURN_ORDER_POLICY = "random"
