"""Command line interface for depstore"""
