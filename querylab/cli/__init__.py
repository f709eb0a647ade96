"""Console front ends: the scripted walkthrough and the interactive user manager."""
