"""
Categorical Variables for the Artwork Recommendation System

Contains standardised lists of categorical variables used throughout the system.
The ordering of MEDIUM_TAXONOMY and GENRE_TAXONOMY defines the one-hot slot
layout of the bandit feature vector and must not be reordered.
"""

# Medium taxonomy (display names, slot order matters)
MEDIUM_TAXONOMY = ['Oil', 'Acrylic', 'Digital', 'Mixed Media', 'Sculpture', 'Photography']

# Genre / style taxonomy (display names, slot order matters)
GENRE_TAXONOMY = ['Abstract', 'Realism', 'Minimalism', 'Cyberpunk', 'Brutalism']

# Device categories
DEVICE_CATEGORIES = ['mobile', 'tablet', 'desktop']

# Day-of-week buckets, indexed by datetime.weekday()
DAY_OF_WEEK_CATEGORIES = ['Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun']

# Season buckets
SEASON_CATEGORIES = ['winter', 'spring', 'summer', 'autumn']

# Collector action categories (for feedback)
ACTION_CATEGORIES = ['view', 'click', 'favorite', 'inquire', 'purchase', 'ignore']

# Reward assigned to each collector action
ACTION_REWARDS = {
    'purchase': 1.0,
    'inquire': 0.7,
    'favorite': 0.5,
    'click': 0.3,
    'view': 0.1,
    'ignore': 0.0
}

# Recommendation reason tags
REASON_CATEGORIES = ['exploit', 'explore']

# Category mappings for easy access
CATEGORY_MAPPINGS = {
    'medium': MEDIUM_TAXONOMY,
    'genre': GENRE_TAXONOMY,
    'device': DEVICE_CATEGORIES,
    'day_of_week': DAY_OF_WEEK_CATEGORIES,
    'season': SEASON_CATEGORIES,
    'action': ACTION_CATEGORIES,
    'reason': REASON_CATEGORIES
}

# Default mappings for categorical features with their default values
DEFAULT_CATEGORICAL_VALUES = {
    'genre': 'Contemporary',
    'device': 'desktop',
    'action': 'view',
    'reason': 'exploit'
}


def get_categories(category_name: str):
    """
    Get category list by name.

    Raises:
        KeyError: If category name not found
    """
    if category_name not in CATEGORY_MAPPINGS:
        raise KeyError(f"Category '{category_name}' not found. Available categories: {list(CATEGORY_MAPPINGS.keys())}")

    return CATEGORY_MAPPINGS[category_name]


def get_default_value(category_name: str):
    """
    Get default value for a category.

    Raises:
        KeyError: If category name not found
    """
    if category_name not in DEFAULT_CATEGORICAL_VALUES:
        raise KeyError(f"Default value for category '{category_name}' not found.")

    return DEFAULT_CATEGORICAL_VALUES[category_name]


def taxonomy_index(category_name: str, label) -> int:
    """
    Case-insensitive position of a label within a taxonomy.

    Returns:
        Index of the label, or -1 if the label is missing or unknown
    """
    if not isinstance(label, str):
        return -1
    wanted = label.strip().lower()
    for i, name in enumerate(get_categories(category_name)):
        if name.lower() == wanted:
            return i
    return -1


def get_action_reward(action: str) -> float:
    """Reward for a collector action; unknown actions earn nothing."""
    if not isinstance(action, str):
        return 0.0
    return ACTION_REWARDS.get(action.strip().lower(), 0.0)
