"""Domain services for the techno.dog knowledge layer."""
