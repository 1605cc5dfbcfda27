"""Personal data discovery: pattern registry, storage walking, classification and reporting."""
