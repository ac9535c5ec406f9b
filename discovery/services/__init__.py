"""Session manager and workflow service: the engine's operation boundary."""
