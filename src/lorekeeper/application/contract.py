CONTRACT_VERSION = "1.0.0"

COMMAND_INTENTS = (
    "update_player",
    "handle_game_event",
    "start_story",
    "advance",
    "complete_reveal",
    "select_choice",
    "skip",
    "close",
    "select_companion",
    "set_autoplay",
    "set_speed",
    "reset_progress",
)

QUERY_INTENTS = (
    "view",
    "notifications",
    "list_stories",
    "relationship_views",
    "drain_effects",
    "last_callback_errors",
)

CONTRACT_DTO_TYPES = (
    "DialogueView",
    "ChoiceView",
    "NotificationView",
    "StorySummaryView",
    "RelationshipView",
    "DialogueTrigger",
)
