"""Input utilities"""
