# Apps Package
"""
Presentation layer for the card configurator.

Structure:
- app_configurator.py: Streamlit page that drives ``core.configurator``
"""
