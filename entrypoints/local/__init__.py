"""Local development entry points"""
