"""Repository package. Database query layer.

Each repository extends BaseRepository for generic CRUD and adds the
queries its domain needs.
"""
