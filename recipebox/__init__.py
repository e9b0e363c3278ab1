"""RecipeBox: a recipe catalogue with a hierarchical tag index."""
