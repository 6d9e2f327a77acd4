"""
Coffee Shop Analytics
"""
