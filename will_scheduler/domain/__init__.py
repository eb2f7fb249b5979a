"""Domain layer: typed errors, collaborator ports and repository protocols."""
