"""Game domain services: scoring, word packs, accounts and the offline game.

This package contains pure(ish) domain logic that should be imported by
room services, HTTP routes and socket handlers, keeping transport concerns
separated from core game mechanics.
"""
