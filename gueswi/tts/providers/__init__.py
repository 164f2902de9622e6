"""Text-to-speech provider implementations"""
