"""Language-model completion client and prompt templates."""
