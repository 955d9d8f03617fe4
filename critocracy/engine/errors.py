"""
Error kinds raised by the engine.
All subclass ValueError so callers that only know about ValueError still catch them.
"""


class GameError(ValueError):
    """Base class. `kind` is the stable name reported to API clients."""
    kind = "game_error"


class ConfigurationError(GameError):
    """Malformed board or card content. Fatal: detected at load time."""
    kind = "configuration_error"


class IllegalAction(GameError):
    """Action not valid for the current phase, sub-phase or player."""
    kind = "illegal_action"


class InvalidChoice(GameError):
    """Chosen coordinate is not one of the offered choicepoint successors."""
    kind = "invalid_choice"


class AlreadyFinished(GameError):
    """Movement attempted for a player who has reached FINISH."""
    kind = "already_finished"


class DeckEmpty(GameError):
    """Deck has no cards left and reshuffling is disabled."""
    kind = "deck_empty"


class NotEnoughRoles(GameError):
    """More players than distinct roles."""
    kind = "not_enough_roles"


class NoEffectForRole(GameError):
    """Card content has no effect for a role. Only possible with unvalidated content."""
    kind = "no_effect_for_role"
