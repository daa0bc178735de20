"""Entry points"""
