"""Core domain package for rolecast.

Core contains history selection, rewrite rules, and formatting logic without
any host, file, or markup-specific code, keeping the business logic portable.
"""
