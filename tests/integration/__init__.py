"""
Tests d'intégration pour core-logistics-migration.

Ces tests exécutent la migration, l'audit et la purge RGPD de bout en bout
sur une base SQLite en mémoire.
"""
