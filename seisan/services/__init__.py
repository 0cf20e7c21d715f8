"""Business services; every operation takes an explicit Actor."""
