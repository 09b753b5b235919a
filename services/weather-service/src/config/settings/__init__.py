"""
Settings package for Weather Service.

Select a module with DJANGO_SETTINGS_MODULE, e.g. ``config.settings.development``.
"""
