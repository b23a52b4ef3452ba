"""Types partagés, configuration, erreurs et journalisation."""
