"""
Badge definitions and their owned collections (criteria, categories, tags).
"""
