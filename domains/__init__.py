"""Domain packages of the uploader service."""
