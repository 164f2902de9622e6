"""Dashboard Domain"""
