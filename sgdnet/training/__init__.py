"""Training driver, evaluation and pipeline assembly."""
