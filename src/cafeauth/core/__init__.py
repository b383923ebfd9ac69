"""Core domain: errors, cooldown policy, models and interfaces."""
