"""Constants for default binding resolution."""

# Verbs accepted as implementing each operation when no chain is declared
VERB_SYNONYMS = {
    "List": ("Get", "List", "Find", "Read", "Query", "Search", "Fetch", "Select"),
    "View": (),
    "Insert": ("Create", "Add", "Insert", "New"),
    "Update": ("Update", "Modify", "Set", "Patch", "Change"),
    "Delete": ("Delete", "Remove", "Erase", "Drop"),
}

# Global parameter names that should be stored as secrets
SENSITIVE_NAME_PATTERN = r"password|token|secret|bearer"

SEEDED_GLOBAL_DESCRIPTION = "Auto-created from PowerShell (Source: Connection)"
