"""Narrative tracker — derives structured world state from role-play chat.

Messages go through extraction, identity resolution and the synchronizer into
a per-conversation StateStore; changes are published on an EventBus and
gates decide which consumer modules may generate content.
"""
