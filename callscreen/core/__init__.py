"""Configuration, models, state machine and collaborator interfaces."""
