"""Noyau de migration et de conformité RGPD du backend logistique."""

__version__ = "0.1.0"
