"""Local (file-backed) inventory and price cache."""
