"""Domain objects shared by the pipeline stages."""
