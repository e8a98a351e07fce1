"""Word packs: (word, hint) pairs per category and difficulty."""
from __future__ import annotations

import random

WORDS = {
    'movies': {
        'easy': [
            ('Inception', 'Dreams'), ('Avatar', 'Blue face'), ('Titanic', 'Ship'),
            ('Jaws', 'Teeth'), ('Gladiator', 'Fight'), ('The Matrix', 'Simulation'),
            ('Jurassic Park', 'Roar'),
        ],
        'medium': [
            ('Parasite', 'Class conflict thriller'), ('Memento', 'Revenge with amnesia'),
            ('Interstellar', 'Space'), ('The Prestige', 'Rival magicians duel'),
            ('Blade Runner 2049', 'Replicant hunter in 2049'),
        ],
    },
    'brands': {
        'easy': [
            ('Apple', 'Gravity'), ('Nike', 'Swoosh athletic wear'), ('Coca-Cola', 'Red cola giant'),
            ("McDonald's", 'Golden arches fast food'), ('Disney', 'Mouse kingdom entertainment'),
            ('Amazon', 'River and shopping giant'), ('Netflix', 'Streaming red envelope'),
        ],
        'medium': [
            ('Tesla', 'Motor'), ('Gucci', 'Italian luxury fashion'), ('Supreme', 'Streetwear supreme brand'),
            ('Rolex', 'Swiss luxury watches'), ('Hermès', 'French luxury leather goods'),
        ],
    },
    'countries': {
        'easy': [
            ('Japan', 'Land of rising sun'), ('Brazil', 'Samba and football nation'),
            ('Canada', 'Maple leaf frozen north'), ('Sweden', 'Meatballs'),
            ('Australia', 'Kangaroo island continent'), ('Egypt', 'Tomb'),
        ],
        'medium': [
            ('Iceland', 'Fire and ice nation'), ('Vietnam', 'Pho and rice paddies'),
            ('Greece', 'Olive and island mythology'), ('Portugal', 'Port wine cork nation'),
            ('Thailand', 'Green Curry'),
        ],
    },
    'animals': {
        'easy': [
            ('Penguin', 'Tuxedo'), ('Giraffe', 'Neck'), ('Elephant', 'Trunk and memory'),
            ('Dolphin', 'Bottle'), ('Tiger', 'Stripy'), ('Panda', 'Bamboo'), ('Lion', 'Mane king of beasts'),
        ],
        'medium': [
            ('Axolotl', 'Pink aquatic salamander'), ('Meerkat', 'Standing desert sentry'),
            ('Narwhal', 'Arctic whale with tusk'), ('Pangolin', 'Scaled insect eater'),
            ('Platypus', 'Egg-laying venomous mammal'), ('Okapi', 'Striped forest giraffe'),
        ],
    },
    'food': {
        'easy': [
            ('Pizza', 'Cheesy Italian pie'), ('Sushi', 'Raw fish rice roll'), ('Burger', 'Patty between buns'),
            ('Pasta', 'Carb noodle dish'), ('Taco', 'Folded Mexican shell'), ('Donut', 'Fried circle with hole'),
        ],
        'medium': [
            ('Baklava', 'Sweet pastry layers honey'), ('Ramen', 'Japanese noodle soup'),
            ('Samosa', 'Indian fried triangle'), ('Paella', 'Spanish rice festival dish'),
            ('Kimchi', 'Spicy fermented vegetables'), ('Ceviche', 'Peruvian citrus fish'),
        ],
    },
    'places': {
        'easy': [
            ('Beach', 'Sand and ocean shore'), ('Mountain', 'High peak terrain'),
            ('Library', 'Book knowledge building'), ('Airport', 'Plane takeoff hub'),
            ('Stadium', 'Large sporting venue'),
        ],
        'medium': [
            ('Bazaar', 'Middle Eastern market'), ('Harbor', 'Coastal boat anchorage'),
            ('Vineyard', 'Wine grape farm'), ('Catacombs', 'Underground burial tunnels'),
            ('Observatory', 'Star viewing dome'), ('Colosseum', 'Roman arena ruins'),
        ],
    },
}


def word_pool(categories=None, difficulty: str | None = None) -> list[dict]:
    """All (word, hint) entries for the chosen categories; every category if none match."""
    chosen = [c for c in (categories or []) if c in WORDS] or list(WORDS)
    pool = []
    for category in chosen:
        levels = WORDS[category]
        keys = [difficulty] if difficulty in levels else list(levels)
        for level in keys:
            pool.extend({'word': w, 'hint': h} for w, h in levels[level])
    return pool


def draw_word(categories=None, difficulty: str | None = None, rng: random.Random | None = None) -> dict:
    return (rng or random).choice(word_pool(categories, difficulty))
